import time
from datetime import datetime


class Clock:
    """Time source shared by the readiness gate and the phase machine.

    ``monotonic()`` measures intervals; ``wall()`` only labels records.
    """

    def monotonic(self) -> float:
        return time.monotonic()

    def wall(self) -> datetime:
        return datetime.now()
