"""Check-in: tạo và liệt kê (bất biến sau khi tạo)."""
from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from narrator.config import get_settings
from narrator.errors import ValidationError
from narrator.logging_config import get_logger
from narrator.models import CheckIn
from narrator.models.check_in import CHECK_IN_MAX_LENGTH
from narrator.services.narrative_service import get_user_timezone_name
from narrator.utils.time_windows import local_day_bounds_utc, resolve_timezone

logger = get_logger(__name__)


async def create_check_in(db: AsyncSession, user_id: UUID, content: str) -> CheckIn:
    text = (content or "").strip()
    if not text or len(text) > CHECK_IN_MAX_LENGTH:
        raise ValidationError(f"Check-in content must be 1..{CHECK_IN_MAX_LENGTH} characters")
    row = CheckIn(user_id=user_id, content=text)
    db.add(row)
    await db.commit()
    logger.info("checkin.created", user_id=str(user_id), length=len(text))
    return row


async def list_check_ins(
    db: AsyncSession, user_id: UUID, day: Optional[date] = None, limit: int = 50
) -> List[CheckIn]:
    """Check-in mới nhất trước; `day` lọc theo ngày local của user."""
    q = select(CheckIn).where(CheckIn.user_id == user_id)
    if day is not None:
        tz = resolve_timezone(await get_user_timezone_name(db, user_id), get_settings().default_timezone)
        start, end = local_day_bounds_utc(day, tz)
        q = q.where(CheckIn.created_at >= start, CheckIn.created_at < end)
    q = q.order_by(CheckIn.created_at.desc()).limit(limit)
    r = await db.execute(q)
    return list(r.scalars().all())
