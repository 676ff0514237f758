"""Schedule settings và platform settings: mỗi user một row, tạo mặc định khi đọc lần đầu."""
from typing import Any, Dict
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from narrator.config import get_settings
from narrator.errors import ValidationError
from narrator.logging_config import get_logger
from narrator.models import GenerationSchedule, PlatformSettings
from narrator.utils.time_windows import HHMM_RE, is_valid_timezone

logger = get_logger(__name__)


async def _get_or_create(db: AsyncSession, model: Any, user_id: UUID, **defaults: Any) -> Any:
    r = await db.execute(select(model).where(model.user_id == user_id))
    row = r.scalar_one_or_none()
    if row is not None:
        return row
    row = model(user_id=user_id, **defaults)
    db.add(row)
    try:
        await db.commit()
    except IntegrityError:
        # Request song song đã tạo trước.
        await db.rollback()
        r = await db.execute(select(model).where(model.user_id == user_id))
        return r.scalar_one()
    logger.info("settings.created_defaults", table=model.__tablename__, user_id=str(user_id))
    return row


async def get_or_create_schedule(db: AsyncSession, user_id: UUID) -> GenerationSchedule:
    return await _get_or_create(db, GenerationSchedule, user_id, timezone=get_settings().default_timezone)


async def update_schedule(db: AsyncSession, user_id: UUID, changes: Dict[str, Any]) -> GenerationSchedule:
    """Cập nhật các field được gửi (đã validate ở schema; kiểm tra lại để service dùng được độc lập)."""
    for key in ("daily_time", "weekly_time", "monthly_time"):
        if key in changes and not HHMM_RE.match(str(changes[key])):
            raise ValidationError(f"{key} must be in HH:MM format", details={key: changes[key]})
    if "timezone" in changes and not is_valid_timezone(changes["timezone"]):
        raise ValidationError("Unknown timezone", details={"timezone": changes["timezone"]})
    if "weekly_day" in changes and not 0 <= changes["weekly_day"] <= 6:
        raise ValidationError("weekly_day must be between 0 (Sunday) and 6")
    if "monthly_day" in changes and not 1 <= changes["monthly_day"] <= 28:
        raise ValidationError("monthly_day must be between 1 and 28")
    schedule = await get_or_create_schedule(db, user_id)
    for key, value in changes.items():
        setattr(schedule, key, value)
    await db.commit()
    await db.refresh(schedule)
    logger.info("schedule.updated", user_id=str(user_id), fields=sorted(changes))
    return schedule


async def get_or_create_platform_settings(db: AsyncSession, user_id: UUID) -> PlatformSettings:
    return await _get_or_create(db, PlatformSettings, user_id)


async def update_platform_settings(db: AsyncSession, user_id: UUID, changes: Dict[str, bool]) -> PlatformSettings:
    row = await get_or_create_platform_settings(db, user_id)
    for key, value in changes.items():
        setattr(row, key, bool(value))
    await db.commit()
    await db.refresh(row)
    logger.info("platform_settings.updated", user_id=str(user_id), enabled=row.enabled_platforms())
    return row
