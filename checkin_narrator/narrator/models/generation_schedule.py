"""Lịch sinh bài tự động theo user (một row / user)."""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from narrator.clock import utcnow
from narrator.db import Base
from narrator.models.types import UTCDateTime

DEFAULT_DAILY_TIME = "21:00"
DEFAULT_WEEKLY_DAY = 0  # Chủ nhật (0=Sunday .. 6=Saturday)
DEFAULT_WEEKLY_TIME = "20:00"
DEFAULT_MONTHLY_DAY = 28
DEFAULT_MONTHLY_TIME = "20:00"


class GenerationSchedule(Base):
    """
    daily_time / weekly_time / monthly_time: "HH:MM" theo timezone của user.
    weekly_day: 0=Sunday..6; monthly_day: 1..28 (tồn tại ở mọi tháng).
    """

    __tablename__ = "generation_schedules"
    __table_args__ = (
        CheckConstraint("weekly_day BETWEEN 0 AND 6", name="ck_generation_schedules_weekly_day"),
        CheckConstraint("monthly_day BETWEEN 1 AND 28", name="ck_generation_schedules_monthly_day"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    daily_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    daily_time: Mapped[str] = mapped_column(String(5), nullable=False, default=DEFAULT_DAILY_TIME)
    weekly_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    weekly_day: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_WEEKLY_DAY)
    weekly_time: Mapped[str] = mapped_column(String(5), nullable=False, default=DEFAULT_WEEKLY_TIME)
    monthly_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    monthly_day: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_MONTHLY_DAY)
    monthly_time: Mapped[str] = mapped_column(String(5), nullable=False, default=DEFAULT_MONTHLY_TIME)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    user = relationship("User", back_populates="schedule")
