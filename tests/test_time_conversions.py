from datetime import date, datetime

import pytest

from kumbhaka.core.settings import TimeDisplayStyle
from kumbhaka.utils.time_conversions import (
    format_date_only,
    format_date_time,
    format_decimal_seconds,
    format_minute_second,
    format_seconds,
    format_time_only,
    truncate_one_decimal,
)


@pytest.mark.parametrize("seconds", [12.37, 12.39, 12.3])
def test_decimal_truncates_instead_of_rounding(seconds):
    assert format_decimal_seconds(seconds) == "12.3 秒"


def test_truncation_survives_binary_float_error():
    # 2.3 * 10 is 22.999999999999996 in binary floating point
    assert truncate_one_decimal(2.3) == 2.3
    assert format_decimal_seconds(0.7) == "0.7 秒"


def test_truncate_clamps_negative_to_zero():
    assert truncate_one_decimal(-0.5) == 0.0
    assert format_decimal_seconds(-3.0) == "0.0 秒"


@pytest.mark.parametrize("seconds, expected", [
    (0.0, "0秒"),
    (59.9, "59秒"),
    (60.0, "1分0秒"),
    (125.4, "2分5秒"),
    (3600.0, "60分0秒"),
])
def test_minute_second_boundaries(seconds, expected):
    assert format_minute_second(seconds) == expected


def test_format_seconds_uses_style_and_dash_for_missing():
    assert format_seconds(None, TimeDisplayStyle.DECIMAL_SECOND) == "—"
    assert format_seconds(None, TimeDisplayStyle.MINUTE_SECOND) == "—"
    assert format_seconds(75.55, TimeDisplayStyle.DECIMAL_SECOND) == "75.5 秒"
    assert format_seconds(75.55, TimeDisplayStyle.MINUTE_SECOND) == "1分15秒"


def test_date_labels_drop_hour_padding():
    value = datetime(2025, 1, 31, 7, 5, 9)
    assert format_date_time(value) == "2025/01/31 7:05:09"
    assert format_time_only(value) == "7:05:09"
    assert format_date_only(date(2025, 1, 31)) == "2025/01/31"
