"""Generated post: bài tổng hợp DAILY / WEEKLY / MONTHLY, có version."""
import uuid
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from narrator.clock import utcnow
from narrator.db import Base
from narrator.models.types import JsonType, UTCDateTime

POST_TYPE_DAILY = "DAILY"
POST_TYPE_WEEKLY = "WEEKLY"
POST_TYPE_MONTHLY = "MONTHLY"
POST_TYPES = (POST_TYPE_DAILY, POST_TYPE_WEEKLY, POST_TYPE_MONTHLY)

GENERATION_AUTO = "AUTO"
GENERATION_MANUAL = "MANUAL"


class GeneratedPost(Base):
    """
    Một version của bài tổng hợp cho (user_id, type, date).
    date = đầu kỳ: ngày (DAILY), thứ Hai của tuần (WEEKLY), ngày 1 của tháng (MONTHLY).
    Mỗi bộ (user_id, type, date) có tối đa một row is_latest=true; version liên tục từ 1.
    Không xóa trong vận hành bình thường.
    """

    __tablename__ = "generated_posts"
    __table_args__ = (
        UniqueConstraint("user_id", "type", "date", "version", name="uq_generated_posts_version"),
        Index(
            "uq_generated_posts_latest",
            "user_id",
            "type",
            "date",
            unique=True,
            postgresql_where=text("is_latest"),
            sqlite_where=text("is_latest = 1"),
        ),
        Index("ix_generated_posts_user_generation_created", "user_id", "generation_type", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False)  # DAILY | WEEKLY | MONTHLY
    date: Mapped[date] = mapped_column(Date, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JsonType, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_latest: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    generation_type: Mapped[str] = mapped_column(String(16), nullable=False, default=GENERATION_AUTO)  # AUTO | MANUAL
    model_used: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    tone_profile_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("tone_profiles.id", ondelete="SET NULL"),
        nullable=True,
    )
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

    platform_posts = relationship(
        "PlatformPost",
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="PlatformPost.platform",
    )
