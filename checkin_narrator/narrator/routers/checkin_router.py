"""Check-ins: input thô cho bài DAILY."""
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from narrator.db import get_db
from narrator.routers.deps import get_current_user_id
from narrator.schemas.checkin import CheckInCreate, CheckInListResponse, CheckInOut
from narrator.services.checkin_service import create_check_in, list_check_ins

router = APIRouter(prefix="/checkins", tags=["checkins"])


@router.post("", response_model=CheckInOut, status_code=status.HTTP_201_CREATED)
async def post_check_in(
    body: CheckInCreate,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> CheckInOut:
    row = await create_check_in(db, user_id, body.content)
    return CheckInOut.model_validate(row)


@router.get("", response_model=CheckInListResponse)
async def get_check_ins(
    day: Optional[date] = Query(None, alias="date", description="Ngày local của user (YYYY-MM-DD)"),
    limit: int = Query(50, ge=1, le=200),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> CheckInListResponse:
    rows = await list_check_ins(db, user_id, day=day, limit=limit)
    return CheckInListResponse(items=[CheckInOut.model_validate(r) for r in rows])
