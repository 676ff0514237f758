"""Lịch sinh bài tự động của user."""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from narrator.db import get_db
from narrator.routers.deps import get_current_user_id
from narrator.schemas.settings import ScheduleSettingsOut, ScheduleSettingsUpdate
from narrator.services.settings_service import get_or_create_schedule, update_schedule

router = APIRouter(prefix="/schedule", tags=["schedule"])


@router.get("/settings", response_model=ScheduleSettingsOut)
async def get_schedule_settings(
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ScheduleSettingsOut:
    """Lịch hiện tại; chưa có thì tạo mặc định (21:00 / CN 20:00 / ngày 28 20:00)."""
    schedule = await get_or_create_schedule(db, user_id)
    return ScheduleSettingsOut.model_validate(schedule)


@router.put("/settings", response_model=ScheduleSettingsOut)
async def put_schedule_settings(
    body: ScheduleSettingsUpdate,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ScheduleSettingsOut:
    schedule = await update_schedule(db, user_id, body.model_dump(exclude_none=True))
    return ScheduleSettingsOut.model_validate(schedule)
