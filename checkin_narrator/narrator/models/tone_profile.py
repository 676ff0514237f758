"""Tone profile: giọng văn AI trích xuất + override thủ công + preferences."""
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, ForeignKey, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from narrator.clock import utcnow
from narrator.db import Base
from narrator.models.types import JsonType, UTCDateTime


class ToneProfile(Base):
    """
    voice / sentence_style / emotional_range: AI trích xuất từ bài mẫu.
    custom_*: user sửa tay, ưu tiên hơn giá trị AI khi merge.
    """

    __tablename__ = "tone_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    voice: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sentence_style: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    emotional_range: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    common_phrases: Mapped[list[str]] = mapped_column(JsonType, nullable=False, default=list)
    custom_voice: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    custom_sentence_style: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    custom_emotional_range: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    writing_goals: Mapped[list[str]] = mapped_column(JsonType, nullable=False, default=list)
    target_audience: Mapped[list[str]] = mapped_column(JsonType, nullable=False, default=list)
    content_purpose: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tone_characteristics: Mapped[dict[str, Any]] = mapped_column(JsonType, nullable=False, default=dict)
    avoid_topics: Mapped[list[str]] = mapped_column(JsonType, nullable=False, default=list)
    preferred_length: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)  # concise | moderate | detailed
    include_emojis: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    include_hashtags: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    manually_edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )
