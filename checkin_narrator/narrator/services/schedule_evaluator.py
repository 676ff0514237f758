"""
Schedule evaluator: quét generation_schedules, tạo job PENDING cho kỳ đến hạn.

Không gọi LLM. Với mỗi (user, type) đang bật và khớp giờ hẹn (theo timezone của user):
bỏ qua nếu đã có bài latest, đã có job active, hoặc chưa đủ input.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from narrator.clock import utcnow
from narrator.config import get_settings
from narrator.logging_config import get_logger
from narrator.models import CheckIn, GeneratedPost, GenerationSchedule
from narrator.models.generated_post import POST_TYPE_DAILY, POST_TYPE_MONTHLY, POST_TYPE_WEEKLY
from narrator.services.job_service import enqueue_job, has_active_job
from narrator.utils.time_windows import (
    is_time_match,
    js_weekday,
    local_day_bounds_utc,
    month_end,
    month_start,
    resolve_timezone,
    week_start,
)

logger = get_logger(__name__)


@dataclass
class EvaluationSummary:
    checked: int = 0
    matched: int = 0
    created: int = 0
    skipped: Dict[str, int] = field(default_factory=dict)
    jobs: List[dict] = field(default_factory=list)

    def skip(self, reason: str) -> None:
        self.skipped[reason] = self.skipped.get(reason, 0) + 1

    def as_dict(self) -> dict:
        return {
            "checked": self.checked,
            "matched": self.matched,
            "created": self.created,
            "skipped": dict(self.skipped),
        }


def due_candidates(schedule: GenerationSchedule, now: datetime, window_minutes: int) -> List[Tuple[str, date]]:
    """(type, period) đến hạn cho schedule tại thời điểm now (UTC)."""
    tz = resolve_timezone(schedule.timezone, get_settings().default_timezone)
    local_now = now.astimezone(tz)
    today = local_now.date()
    out: List[Tuple[str, date]] = []
    if schedule.daily_enabled and is_time_match(schedule.daily_time, local_now, window_minutes):
        out.append((POST_TYPE_DAILY, today))
    if (
        schedule.weekly_enabled
        and js_weekday(today) == schedule.weekly_day
        and is_time_match(schedule.weekly_time, local_now, window_minutes)
    ):
        out.append((POST_TYPE_WEEKLY, week_start(today)))
    if (
        schedule.monthly_enabled
        and today.day == schedule.monthly_day
        and is_time_match(schedule.monthly_time, local_now, window_minutes)
    ):
        out.append((POST_TYPE_MONTHLY, month_start(today)))
    return out


async def _count_check_ins(db: AsyncSession, user_id: UUID, day: date, tz_name: str) -> int:
    start_utc, end_utc = local_day_bounds_utc(day, resolve_timezone(tz_name, get_settings().default_timezone))
    r = await db.execute(
        select(func.count(CheckIn.id)).where(
            CheckIn.user_id == user_id,
            CheckIn.created_at >= start_utc,
            CheckIn.created_at < end_utc,
        )
    )
    return int(r.scalar() or 0)


async def _count_latest(db: AsyncSession, user_id: UUID, post_type: str, start: date, end: date) -> int:
    r = await db.execute(
        select(func.count(GeneratedPost.id)).where(
            GeneratedPost.user_id == user_id,
            GeneratedPost.type == post_type,
            GeneratedPost.date >= start,
            GeneratedPost.date <= end,
            GeneratedPost.is_latest.is_(True),
        )
    )
    return int(r.scalar() or 0)


async def _latest_exists(db: AsyncSession, user_id: UUID, post_type: str, period: date) -> bool:
    return await _count_latest(db, user_id, post_type, period, period) > 0


async def has_enough_input(db: AsyncSession, user_id: UUID, post_type: str, period: date, tz_name: str) -> bool:
    """DAILY: >=1 check-in; WEEKLY: >=WEEKLY_MIN_DAILY_POSTS bài DAILY; MONTHLY: >=MONTHLY_MIN_WEEKLY_POSTS bài WEEKLY."""
    settings = get_settings()
    if post_type == POST_TYPE_DAILY:
        return await _count_check_ins(db, user_id, period, tz_name) >= 1
    if post_type == POST_TYPE_WEEKLY:
        count = await _count_latest(db, user_id, POST_TYPE_DAILY, period, period + timedelta(days=6))
        return count >= settings.weekly_min_daily_posts
    count = await _count_latest(db, user_id, POST_TYPE_WEEKLY, period, month_end(period))
    return count >= settings.monthly_min_weekly_posts


async def evaluate_schedules(db: AsyncSession, now: Optional[datetime] = None) -> EvaluationSummary:
    """Một lượt evaluator. Job được commit từng cái; insert trùng (race) tính là skipped."""
    settings = get_settings()
    now = now or utcnow()
    summary = EvaluationSummary()
    r = await db.execute(
        select(GenerationSchedule).where(
            GenerationSchedule.daily_enabled.is_(True)
            | GenerationSchedule.weekly_enabled.is_(True)
            | GenerationSchedule.monthly_enabled.is_(True)
        )
    )
    schedules = [
        (s.user_id, s.timezone, due_candidates(s, now, settings.schedule_window_minutes))
        for s in r.scalars().all()
    ]
    for user_id, tz_name, candidates in schedules:
        summary.checked += 1
        for post_type, period in candidates:
            summary.matched += 1
            if await _latest_exists(db, user_id, post_type, period):
                summary.skip("already_generated")
                continue
            if await has_active_job(db, user_id, post_type, period):
                summary.skip("job_active")
                continue
            if not await has_enough_input(db, user_id, post_type, period, tz_name):
                summary.skip("insufficient_input")
                continue
            job = await enqueue_job(db, user_id, post_type, period)
            if job is None:
                summary.skip("duplicate")
                continue
            summary.created += 1
            summary.jobs.append({"job_id": str(job.id), "user_id": str(user_id), "type": post_type, "date": period.isoformat()})
    await db.commit()
    logger.info("evaluator.done", at=now.isoformat(), **summary.as_dict())
    return summary
