import logging
import os
from typing import Optional
from kumbhaka.utils import BASE_DIR

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _log_dir() -> str:
    return os.environ.get("KUMBHAKA_LOG_DIR") or os.path.join(BASE_DIR, "logs")


def _console_level(default: int) -> int:
    name = os.environ.get("KUMBHAKA_LOG_LEVEL", "").upper()
    level = logging.getLevelName(name) if name else default
    return level if isinstance(level, int) else default


def setup_logger(
    name: str,
    log_file: str = "kumbhaka.log",
    level: int = logging.DEBUG,
    console: bool = True,
    handler_level: Optional[int] = None,
) -> logging.Logger:
    """Configure and return a module-level logger.

    Everything down to ``level`` goes to ``<log dir>/<log_file>``; the log dir
    is ``$KUMBHAKA_LOG_DIR`` when set, else ``<package>/logs``. The console
    shows INFO and up unless ``handler_level`` or ``$KUMBHAKA_LOG_LEVEL`` says
    otherwise, so the per-tick debug chatter stays in the file.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if logger.handlers:
        return logger

    log_dir = _log_dir()
    os.makedirs(log_dir, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)

    file_handler = logging.FileHandler(os.path.join(log_dir, log_file), encoding="utf-8")
    file_handler.setLevel(handler_level or level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(handler_level or _console_level(logging.INFO))
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
