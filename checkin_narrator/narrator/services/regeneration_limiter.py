"""Giới hạn sinh bài thủ công: tối đa REGENERATION_DAILY_LIMIT bài MANUAL / ngày / user."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from narrator.clock import utcnow
from narrator.config import get_settings
from narrator.errors import RateLimitError
from narrator.models import GeneratedPost
from narrator.models.generated_post import GENERATION_MANUAL
from narrator.utils.time_windows import resolve_timezone, start_of_local_day_utc


@dataclass(frozen=True)
class RegenerationStats:
    used: int
    limit: int
    remaining: int

    def as_dict(self) -> dict:
        return {"used": self.used, "limit": self.limit, "remaining": self.remaining}


async def count_manual_today(db: AsyncSession, user_id: UUID, now: Optional[datetime] = None) -> int:
    """Số bài MANUAL tạo từ 00:00 hôm nay (theo DEFAULT_TIMEZONE)."""
    settings = get_settings()
    since = start_of_local_day_utc(now or utcnow(), resolve_timezone(settings.default_timezone))
    r = await db.execute(
        select(func.count(GeneratedPost.id)).where(
            GeneratedPost.user_id == user_id,
            GeneratedPost.generation_type == GENERATION_MANUAL,
            GeneratedPost.created_at >= since,
        )
    )
    return int(r.scalar() or 0)


async def get_regeneration_stats(db: AsyncSession, user_id: UUID, now: Optional[datetime] = None) -> RegenerationStats:
    limit = get_settings().regeneration_daily_limit
    used = await count_manual_today(db, user_id, now)
    return RegenerationStats(used=used, limit=limit, remaining=max(0, limit - used))


async def can_user_regenerate(db: AsyncSession, user_id: UUID, now: Optional[datetime] = None) -> bool:
    stats = await get_regeneration_stats(db, user_id, now)
    return stats.used < stats.limit


async def ensure_can_regenerate(db: AsyncSession, user_id: UUID, now: Optional[datetime] = None) -> RegenerationStats:
    """RateLimitError (kèm used/limit/remaining) nếu đã hết lượt hôm nay."""
    stats = await get_regeneration_stats(db, user_id, now)
    if stats.used >= stats.limit:
        raise RateLimitError(used=stats.used, limit=stats.limit, remaining=stats.remaining)
    return stats
