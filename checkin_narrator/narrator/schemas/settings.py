"""Schemas cho schedule settings và platform settings."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from narrator.utils.time_windows import HHMM_RE, is_valid_timezone


class ScheduleSettingsOut(BaseModel):
    daily_enabled: bool
    daily_time: str
    weekly_enabled: bool
    weekly_day: int = Field(..., description="0=Sunday .. 6=Saturday")
    weekly_time: str
    monthly_enabled: bool
    monthly_day: int
    monthly_time: str
    timezone: str
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ScheduleSettingsUpdate(BaseModel):
    """PUT /schedule/settings: chỉ field được gửi mới được cập nhật."""

    daily_enabled: Optional[bool] = None
    daily_time: Optional[str] = None
    weekly_enabled: Optional[bool] = None
    weekly_day: Optional[int] = Field(default=None, ge=0, le=6)
    weekly_time: Optional[str] = None
    monthly_enabled: Optional[bool] = None
    monthly_day: Optional[int] = Field(default=None, ge=1, le=28)
    monthly_time: Optional[str] = None
    timezone: Optional[str] = None

    model_config = {"extra": "forbid"}

    @field_validator("daily_time", "weekly_time", "monthly_time")
    @classmethod
    def time_format(cls, v: Optional[str]) -> Optional[str]:
        """HH:MM, 24h."""
        if v is not None and not HHMM_RE.match(v):
            raise ValueError("time must be in HH:MM format (00:00-23:59)")
        return v

    @field_validator("timezone")
    @classmethod
    def timezone_known(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not is_valid_timezone(v):
            raise ValueError(f"unknown timezone: {v}")
        return v


class PlatformSettingsOut(BaseModel):
    x_enabled: bool
    linkedin_enabled: bool
    reddit_enabled: bool

    model_config = {"from_attributes": True}


class PlatformSettingsUpdate(BaseModel):
    x_enabled: Optional[bool] = None
    linkedin_enabled: Optional[bool] = None
    reddit_enabled: Optional[bool] = None

    model_config = {"extra": "forbid"}
