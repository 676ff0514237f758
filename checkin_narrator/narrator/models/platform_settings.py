"""Platform settings: nền tảng nào được bật cho user."""
import uuid
from datetime import datetime
from typing import List

from sqlalchemy import Boolean, ForeignKey, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from narrator.clock import utcnow
from narrator.db import Base
from narrator.models.types import UTCDateTime


class PlatformSettings(Base):
    __tablename__ = "platform_settings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    x_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    linkedin_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reddit_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    def enabled_platforms(self) -> List[str]:
        """Danh sách platform đang bật, theo thứ tự X, LINKEDIN, REDDIT."""
        out = []
        if self.x_enabled:
            out.append("X")
        if self.linkedin_enabled:
            out.append("LINKEDIN")
        if self.reddit_enabled:
            out.append("REDDIT")
        return out
