import os

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

from kumbhaka.utils.logging_handler import setup_logger  # noqa: E402
from kumbhaka.utils.event import Event  # noqa: E402
from kumbhaka.utils import custom_exception  # noqa: E402
from kumbhaka.utils.clock import Clock  # noqa: E402

__all__ = ["BASE_DIR", "setup_logger", "Event", "custom_exception", "Clock"]
