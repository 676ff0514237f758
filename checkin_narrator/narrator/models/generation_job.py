"""Generation job: đơn vị công việc của hàng đợi (một lần sinh bài cho user/type/date)."""
import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from narrator.clock import utcnow
from narrator.db import Base
from narrator.models.types import UTCDateTime

JOB_PENDING = "PENDING"
JOB_PROCESSING = "PROCESSING"
JOB_COMPLETED = "COMPLETED"
JOB_FAILED = "FAILED"
ACTIVE_JOB_STATUSES = (JOB_PENDING, JOB_PROCESSING)
JOB_STATUSES = (JOB_PENDING, JOB_PROCESSING, JOB_COMPLETED, JOB_FAILED)

_ACTIVE_WHERE = "status IN ('PENDING', 'PROCESSING')"


class GenerationJob(Base):
    """
    PENDING -> PROCESSING -> COMPLETED | FAILED.
    Mỗi (user_id, type, date) có tối đa một job đang active (PENDING/PROCESSING): partial unique index.
    """

    __tablename__ = "generation_jobs"
    __table_args__ = (
        Index("ix_generation_jobs_status_type_date", "status", "type", "date"),
        Index(
            "uq_generation_jobs_active",
            "user_id",
            "type",
            "date",
            unique=True,
            postgresql_where=text(_ACTIVE_WHERE),
            sqlite_where=text(_ACTIVE_WHERE),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=JOB_PENDING)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_kind: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    started_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
