import math
from datetime import date, datetime
from typing import Optional

from kumbhaka.core.settings import TimeDisplayStyle

MISSING_VALUE = "—"

# floor(v * 10) alone turns 2.3 into 2.2 because 2.3 * 10 == 22.999999999999996
_TRUNCATE_EPSILON = 1e-9


def truncate_one_decimal(seconds: float) -> float:
    """
    Truncates a duration toward zero at one decimal digit (12.37 -> 12.3).

    Negative input is clamped to 0.0.
    """
    if seconds <= 0:
        return 0.0
    return math.floor(seconds * 10 + _TRUNCATE_EPSILON) / 10


def format_decimal_seconds(seconds: float) -> str:
    """Formats seconds as ``"12.3 秒"`` using truncation, never rounding."""
    return f"{truncate_one_decimal(seconds):.1f} 秒"


def format_minute_second(seconds: float) -> str:
    """
    Formats seconds as ``"2分5秒"``, or ``"59秒"`` under one minute.

    Sub-second precision is truncated before splitting into minutes.
    """
    total_seconds = max(0, int(seconds))
    minutes, secs = divmod(total_seconds, 60)
    if minutes > 0:
        return f"{minutes}分{secs}秒"
    return f"{secs}秒"


def format_seconds(seconds: Optional[float], style) -> str:
    """
    Formats an optional duration with a TimeDisplayStyle.

    Args:
        seconds (float | None): Duration; None renders as a dash.
        style (TimeDisplayStyle): Display style from settings.

    Returns:
        str: The formatted duration.
    """
    if seconds is None:
        return MISSING_VALUE
    if style == TimeDisplayStyle.DECIMAL_SECOND:
        return format_decimal_seconds(seconds)
    return format_minute_second(seconds)


def format_date_time(value: datetime) -> str:
    """``2025/01/31 7:05:09`` (hour without zero padding)."""
    return f"{value:%Y/%m/%d} {value.hour}:{value:%M:%S}"


def format_date_only(value: date) -> str:
    return f"{value:%Y/%m/%d}"


def format_time_only(value: datetime) -> str:
    return f"{value.hour}:{value:%M:%S}"
