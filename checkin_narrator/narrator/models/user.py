"""User model (chủ sở hữu check-in và bài viết)."""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from narrator.clock import utcnow
from narrator.db import Base
from narrator.models.types import UTCDateTime


class User(Base):
    """Bản ghi user tối giản; auth và profile do hệ thống upstream quản lý."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        server_default=func.now(),
    )

    check_ins = relationship("CheckIn", back_populates="user", cascade="all, delete-orphan")
    schedule = relationship("GenerationSchedule", back_populates="user", uselist=False)
