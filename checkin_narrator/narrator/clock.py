"""Nguồn thời gian có thể thay thế: SystemClock cho production, ManualClock cho test."""
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Thời điểm hiện tại, timezone-aware (UTC)."""
        ...


class SystemClock:
    """Đồng hồ hệ thống (UTC)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """Đồng hồ điều khiển bằng tay: set/advance thay vì chờ thời gian thật."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        start = start or datetime(2025, 1, 1, tzinfo=timezone.utc)
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._now = start

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        self._now = value

    def advance(self, seconds: float = 0, **kwargs: float) -> datetime:
        """Tiến đồng hồ; kwargs truyền thẳng vào timedelta (minutes=, hours=, days=)."""
        self._now = self._now + timedelta(seconds=seconds, **kwargs)
        return self._now


def utcnow() -> datetime:
    """Shortcut dùng làm default cho cột created_at."""
    return datetime.now(timezone.utc)
