"""Token usage log: tokens + cost ước tính cho mỗi lần gọi LLM."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from narrator.clock import utcnow
from narrator.db import Base
from narrator.models.types import UTCDateTime


class TokenUsageLog(Base):
    """
    Một lần gọi LLM (daily-generator, weekly-generator, platform-adapter, ...).
    Ghi bất đồng bộ qua telemetry dispatcher; không nằm trong transaction sinh bài.
    """

    __tablename__ = "token_usage_logs"
    __table_args__ = (Index("ix_token_usage_logs_user_created", "user_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    generated_post_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("generated_posts.id", ondelete="SET NULL"),
        nullable=True,
    )
    platform_post_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("platform_posts.id", ondelete="SET NULL"),
        nullable=True,
    )
    agent_type: Mapped[str] = mapped_column(String(64), nullable=False)
    platform: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    model_used: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    prompt_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    estimated_cost_usd: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 6), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
