"""Validation của request schemas."""
import pytest
from pydantic import ValidationError

from narrator.schemas.checkin import CheckInCreate
from narrator.schemas.settings import ScheduleSettingsUpdate


def test_schedule_time_format() -> None:
    assert ScheduleSettingsUpdate(daily_time="07:05").daily_time == "07:05"
    for bad in ("7:05", "24:00", "21:60", "9pm"):
        with pytest.raises(ValidationError):
            ScheduleSettingsUpdate(daily_time=bad)


def test_schedule_day_bounds() -> None:
    ScheduleSettingsUpdate(weekly_day=0, monthly_day=28)
    with pytest.raises(ValidationError):
        ScheduleSettingsUpdate(weekly_day=7)
    with pytest.raises(ValidationError):
        ScheduleSettingsUpdate(monthly_day=29)
    with pytest.raises(ValidationError):
        ScheduleSettingsUpdate(monthly_day=0)


def test_schedule_timezone_must_exist() -> None:
    assert ScheduleSettingsUpdate(timezone="Asia/Kolkata").timezone == "Asia/Kolkata"
    with pytest.raises(ValidationError):
        ScheduleSettingsUpdate(timezone="Nowhere/City")


def test_schedule_update_rejects_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        ScheduleSettingsUpdate(hourly_enabled=True)


def test_check_in_content_trimmed_and_bounded() -> None:
    assert CheckInCreate(content="  hello  ").content == "hello"
    CheckInCreate(content="x" * 1500)
    with pytest.raises(ValidationError):
        CheckInCreate(content="   ")
    with pytest.raises(ValidationError):
        CheckInCreate(content="x" * 1501)
