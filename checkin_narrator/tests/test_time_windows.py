"""Mốc thời gian: khớp giờ hẹn theo cửa sổ, tuần bắt đầu thứ Hai, tháng, ranh giới ngày local -> UTC."""
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from narrator.utils.time_windows import (
    is_time_match,
    is_valid_timezone,
    js_weekday,
    local_day_bounds_utc,
    month_end,
    parse_hhmm,
    period_start,
    resolve_timezone,
    start_of_local_day_utc,
    week_start,
)


def _local(hour: int, minute: int) -> datetime:
    return datetime(2025, 1, 6, hour, minute)


def test_time_match_window_is_exclusive() -> None:
    assert is_time_match("21:00", _local(21, 0)) is True
    assert is_time_match("21:00", _local(21, 14)) is True
    assert is_time_match("21:00", _local(21, 15)) is False
    assert is_time_match("21:00", _local(20, 50)) is True


def test_time_match_wraps_around_midnight() -> None:
    assert is_time_match("23:55", _local(0, 5)) is True
    assert is_time_match("00:05", _local(23, 55)) is True
    assert is_time_match("00:05", _local(23, 40)) is False


def test_parse_hhmm_rejects_bad_values() -> None:
    assert parse_hhmm("07:30") == (7, 30)
    for bad in ("24:00", "7:30", "12:60", "", "noon"):
        with pytest.raises(ValueError):
            parse_hhmm(bad)


def test_weekday_convention_sunday_is_zero() -> None:
    assert js_weekday(date(2025, 1, 5)) == 0  # Sunday
    assert js_weekday(date(2025, 1, 6)) == 1  # Monday
    assert js_weekday(date(2025, 1, 11)) == 6  # Saturday


def test_week_and_month_periods() -> None:
    assert week_start(date(2025, 1, 5)) == date(2024, 12, 30)
    assert week_start(date(2025, 1, 6)) == date(2025, 1, 6)
    assert month_end(date(2024, 2, 10)) == date(2024, 2, 29)
    assert period_start("DAILY", date(2025, 1, 5)) == date(2025, 1, 5)
    assert period_start("WEEKLY", date(2025, 1, 5)) == date(2024, 12, 30)
    assert period_start("MONTHLY", date(2025, 1, 5)) == date(2025, 1, 1)


def test_local_day_bounds_in_utc() -> None:
    start, end = local_day_bounds_utc(date(2025, 1, 6), ZoneInfo("Asia/Kolkata"))
    assert start == datetime(2025, 1, 5, 18, 30, tzinfo=timezone.utc)
    assert end == datetime(2025, 1, 6, 18, 30, tzinfo=timezone.utc)


def test_start_of_local_day_uses_local_date() -> None:
    now = datetime(2025, 1, 5, 20, 0, tzinfo=timezone.utc)  # 01:30 ngày 6 ở Kolkata
    assert start_of_local_day_utc(now, ZoneInfo("Asia/Kolkata")) == datetime(2025, 1, 5, 18, 30, tzinfo=timezone.utc)


def test_invalid_timezone_falls_back() -> None:
    assert is_valid_timezone("Europe/Berlin") is True
    assert is_valid_timezone("Mars/Olympus") is False
    assert resolve_timezone("Mars/Olympus", "UTC") == ZoneInfo("UTC")
    assert resolve_timezone(None, "Asia/Kolkata") == ZoneInfo("Asia/Kolkata")
