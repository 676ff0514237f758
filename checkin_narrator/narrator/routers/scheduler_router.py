"""Scheduler status và danh sách job cho operator."""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from narrator.db import get_db
from narrator.errors import ValidationError
from narrator.models.generation_job import JOB_STATUSES
from narrator.models.generated_post import POST_TYPES
from narrator.routers.deps import verify_cron_secret
from narrator.schemas.scheduler import GenerationJobOut, SchedulerStatusResponse
from narrator.services.job_service import list_jobs
from narrator.services.scheduler_service import get_scheduler

router = APIRouter(tags=["scheduler"])


@router.get("/scheduler/status", response_model=SchedulerStatusResponse)
async def get_scheduler_status(
    db: AsyncSession = Depends(get_db),
) -> SchedulerStatusResponse:
    """Trạng thái scheduler: enabled, running, interval, last tick của từng vòng, pending_count."""
    status = await get_scheduler().status_with_pending(db)
    return SchedulerStatusResponse(**status)


@router.get(
    "/jobs",
    response_model=List[GenerationJobOut],
    dependencies=[Depends(verify_cron_secret)],
)
async def get_jobs(
    status: Optional[str] = Query(None, description="PENDING | PROCESSING | COMPLETED | FAILED"),
    post_type: Optional[str] = Query(None, alias="type", description="DAILY | WEEKLY | MONTHLY"),
    period: Optional[date] = Query(None, alias="date", description="Period date (YYYY-MM-DD)"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> List[GenerationJobOut]:
    """Job mới nhất trước, lọc theo status / type / date."""
    if status and status.upper() not in JOB_STATUSES:
        raise ValidationError(f"Unknown job status: {status}")
    if post_type and post_type.upper() not in POST_TYPES:
        raise ValidationError(f"Unknown post type: {post_type}")
    jobs = await list_jobs(
        db,
        status=status.upper() if status else None,
        post_type=post_type.upper() if post_type else None,
        period=period,
        limit=limit,
    )
    return [GenerationJobOut.model_validate(j) for j in jobs]
