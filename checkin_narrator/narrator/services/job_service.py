"""
Job queue + worker cho generation_jobs.

Claim: lấy tối đa batch_size job PENDING cũ nhất (FOR UPDATE SKIP LOCKED trên PostgreSQL),
chuyển sang PROCESSING trong cùng transaction. Xử lý: pool giới hạn bởi Semaphore,
mỗi job một session riêng; lỗi của một job không ảnh hưởng job khác.
Maintenance: dọn COMPLETED cũ, retry FAILED có thể retry, đánh FAILED job PROCESSING bị treo.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from narrator.clock import utcnow
from narrator.config import get_settings
from narrator.errors import RETRYABLE_JOB_ERROR_KINDS, NotFoundError, error_kind
from narrator.logging_config import get_logger
from narrator.models import GenerationJob
from narrator.models.generation_job import (
    ACTIVE_JOB_STATUSES,
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_PENDING,
    JOB_PROCESSING,
)
from narrator.services.llm_service import LLMService
from narrator.services.orchestrator_service import generate_complete

logger = get_logger(__name__)

STALLED_ERROR_MESSAGE = "Job stalled - exceeded {minutes} minute timeout"
RETRY_LOOKBACK_HOURS = 24


@dataclass
class ClaimedJob:
    id: UUID
    user_id: UUID
    type: str
    date: date
    attempts: int


@dataclass
class WorkerSummary:
    claimed: int = 0
    completed: int = 0
    failed: int = 0
    errors: List[dict] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"claimed": self.claimed, "completed": self.completed, "failed": self.failed, "errors": self.errors}


def _session_factory() -> async_sessionmaker:
    from narrator.db import async_session_factory

    return async_session_factory


async def enqueue_job(db: AsyncSession, user_id: UUID, post_type: str, period: date) -> Optional[GenerationJob]:
    """
    Tạo và commit job PENDING. None nếu đã có job active cho (user, type, date)
    (partial unique index chặn insert trùng giữa các evaluator chạy song song).
    """
    job = GenerationJob(user_id=user_id, type=post_type, date=period, status=JOB_PENDING)
    db.add(job)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info("job.duplicate_skipped", user_id=str(user_id), type=post_type, date=period.isoformat())
        return None
    return job


async def has_active_job(db: AsyncSession, user_id: UUID, post_type: str, period: date) -> bool:
    r = await db.execute(
        select(func.count(GenerationJob.id)).where(
            GenerationJob.user_id == user_id,
            GenerationJob.type == post_type,
            GenerationJob.date == period,
            GenerationJob.status.in_(ACTIVE_JOB_STATUSES),
        )
    )
    return (r.scalar() or 0) > 0


async def claim_pending_jobs(
    db: AsyncSession,
    batch_size: int,
    job_types: Sequence[str],
    now: Optional[datetime] = None,
) -> List[ClaimedJob]:
    """PENDING -> PROCESSING cho tối đa batch_size job cũ nhất, trong một transaction."""
    now = now or utcnow()
    q = (
        select(GenerationJob)
        .where(GenerationJob.status == JOB_PENDING, GenerationJob.type.in_(list(job_types)))
        .order_by(GenerationJob.created_at.asc())
        .limit(batch_size)
        .with_for_update(skip_locked=True)
    )
    r = await db.execute(q)
    jobs = list(r.scalars().all())
    claimed: List[ClaimedJob] = []
    for job in jobs:
        job.status = JOB_PROCESSING
        job.started_at = now
        job.attempts = (job.attempts or 0) + 1
        claimed.append(ClaimedJob(id=job.id, user_id=job.user_id, type=job.type, date=job.date, attempts=job.attempts))
    await db.flush()
    await db.commit()
    return claimed


async def _finish_job(
    session_factory: async_sessionmaker,
    job_id: UUID,
    status: str,
    now: datetime,
    error: Optional[str] = None,
    kind: Optional[str] = None,
) -> None:
    async with session_factory() as db:
        await db.execute(
            update(GenerationJob)
            .where(GenerationJob.id == job_id)
            .values(status=status, completed_at=now, error=error, error_kind=kind)
        )
        await db.commit()


async def run_job(
    job: ClaimedJob,
    session_factory: Optional[async_sessionmaker] = None,
    llm: Optional[LLMService] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> bool:
    """Chạy một job đã claim. True nếu COMPLETED; mọi lỗi -> FAILED (không ném ra)."""
    session_factory = session_factory or _session_factory()
    clock = clock or utcnow
    log = logger.bind(job_id=str(job.id), user_id=str(job.user_id), type=job.type, date=job.date.isoformat())
    try:
        async with session_factory() as db:
            result = await generate_complete(db, job.user_id, job.type, job.date, is_manual=False, llm=llm)
        await _finish_job(session_factory, job.id, JOB_COMPLETED, clock())
        log.info(
            "job.completed",
            post_id=str(result.base_post.id),
            version=result.base_post.version,
            platforms_failed=result.failed,
        )
        return True
    except Exception as e:
        kind = error_kind(e)
        if isinstance(e, NotFoundError):
            log.warning("job.dependency_not_ready", error=str(e))
        else:
            log.warning("job.failed", error=str(e), error_kind=kind, attempts=job.attempts)
        try:
            await _finish_job(session_factory, job.id, JOB_FAILED, clock(), error=str(e)[:2000], kind=kind)
        except Exception as finish_error:
            log.error("job.mark_failed_error", error=str(finish_error))
        return False


async def process_pending_jobs(
    session_factory: Optional[async_sessionmaker] = None,
    llm: Optional[LLMService] = None,
    batch_size: Optional[int] = None,
    concurrency: Optional[int] = None,
    job_types: Optional[Sequence[str]] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> WorkerSummary:
    """Claim một batch rồi chạy với tối đa `concurrency` job đồng thời."""
    settings = get_settings()
    session_factory = session_factory or _session_factory()
    clock = clock or utcnow
    batch_size = batch_size or settings.worker_batch_size
    concurrency = max(1, concurrency or settings.worker_concurrency)
    job_types = list(job_types or settings.worker_job_types)

    async with session_factory() as db:
        claimed = await claim_pending_jobs(db, batch_size, job_types, now=clock())
    summary = WorkerSummary(claimed=len(claimed))
    if not claimed:
        return summary
    logger.info("worker.claimed", count=len(claimed), concurrency=concurrency)

    semaphore = asyncio.Semaphore(concurrency)

    async def _bounded(job: ClaimedJob) -> bool:
        async with semaphore:
            return await run_job(job, session_factory=session_factory, llm=llm, clock=clock)

    results = await asyncio.gather(*(_bounded(job) for job in claimed))
    for job, ok in zip(claimed, results):
        if ok:
            summary.completed += 1
        else:
            summary.failed += 1
            summary.errors.append({"job_id": str(job.id), "type": job.type, "date": job.date.isoformat()})
    logger.info("worker.batch_done", claimed=summary.claimed, completed=summary.completed, failed=summary.failed)
    return summary


async def fail_stalled_jobs(db: AsyncSession, now: Optional[datetime] = None, stalled_minutes: Optional[int] = None) -> int:
    """PROCESSING quá stalled_minutes -> FAILED (error_kind=STALLED)."""
    minutes = stalled_minutes or get_settings().stalled_job_minutes
    now = now or utcnow()
    cutoff = now - timedelta(minutes=minutes)
    r = await db.execute(
        update(GenerationJob)
        .where(GenerationJob.status == JOB_PROCESSING, GenerationJob.started_at < cutoff)
        .values(
            status=JOB_FAILED,
            error=STALLED_ERROR_MESSAGE.format(minutes=minutes),
            error_kind="STALLED",
            completed_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    count = r.rowcount or 0
    if count:
        logger.warning("job.stalled_failed", count=count, minutes=minutes)
    return count


async def prune_completed_jobs(db: AsyncSession, now: Optional[datetime] = None, retention_days: Optional[int] = None) -> int:
    """Xóa job COMPLETED cũ hơn retention_days (theo completed_at)."""
    days = retention_days or get_settings().job_retention_days
    cutoff = (now or utcnow()) - timedelta(days=days)
    r = await db.execute(
        delete(GenerationJob)
        .where(GenerationJob.status == JOB_COMPLETED, GenerationJob.completed_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    count = r.rowcount or 0
    if count:
        logger.info("job.pruned", count=count, retention_days=days)
    return count


async def retry_failed_jobs(db: AsyncSession, now: Optional[datetime] = None, limit: Optional[int] = None) -> int:
    """
    Đưa FAILED về PENDING: tối đa `limit` job, lỗi thuộc loại retry được, attempts < JOB_MAX_ATTEMPTS,
    fail trong RETRY_LOOKBACK_HOURS gần đây và chưa có job active khác cho cùng (user, type, date).
    NotFound (dependency chưa sẵn sàng) không bao giờ được retry ở đây.
    """
    settings = get_settings()
    now = now or utcnow()
    limit = limit or settings.retry_sweep_limit
    r = await db.execute(
        select(GenerationJob)
        .where(
            GenerationJob.status == JOB_FAILED,
            GenerationJob.attempts < settings.job_max_attempts,
            GenerationJob.error_kind.in_(sorted(RETRYABLE_JOB_ERROR_KINDS)),
            GenerationJob.completed_at >= now - timedelta(hours=RETRY_LOOKBACK_HOURS),
        )
        .order_by(GenerationJob.completed_at.asc())
        .limit(limit)
    )
    candidates = [(job.id, job.user_id, job.type, job.date) for job in r.scalars().all()]
    requeued = 0
    for job_id, user_id, post_type, period in candidates:
        if await has_active_job(db, user_id, post_type, period):
            continue
        try:
            await db.execute(
                update(GenerationJob)
                .where(GenerationJob.id == job_id, GenerationJob.status == JOB_FAILED)
                .values(status=JOB_PENDING, error=None, error_kind=None, started_at=None, completed_at=None)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        except IntegrityError:
            await db.rollback()
            continue
        requeued += 1
    await db.commit()
    if requeued:
        logger.info("job.requeued", count=requeued)
    return requeued


@dataclass
class MaintenanceSummary:
    stalled: int = 0
    pruned: int = 0
    requeued: int = 0

    def as_dict(self) -> dict:
        return {"stalled": self.stalled, "pruned": self.pruned, "requeued": self.requeued}


async def run_maintenance(db: AsyncSession, now: Optional[datetime] = None) -> MaintenanceSummary:
    """Một vòng dọn dẹp: stalled -> retry sweep -> prune."""
    now = now or utcnow()
    stalled = await fail_stalled_jobs(db, now)
    requeued = await retry_failed_jobs(db, now)
    pruned = await prune_completed_jobs(db, now)
    return MaintenanceSummary(stalled=stalled, pruned=pruned, requeued=requeued)


async def count_pending_jobs(db: AsyncSession) -> int:
    r = await db.execute(select(func.count(GenerationJob.id)).where(GenerationJob.status == JOB_PENDING))
    return int(r.scalar() or 0)


async def list_jobs(
    db: AsyncSession,
    status: Optional[str] = None,
    post_type: Optional[str] = None,
    period: Optional[date] = None,
    limit: int = 100,
) -> List[GenerationJob]:
    """Danh sách job cho operator (lọc theo status / type / date)."""
    q = select(GenerationJob)
    if status:
        q = q.where(GenerationJob.status == status)
    if post_type:
        q = q.where(GenerationJob.type == post_type)
    if period:
        q = q.where(GenerationJob.date == period)
    q = q.order_by(GenerationJob.created_at.desc()).limit(limit)
    r = await db.execute(q)
    return list(r.scalars().all())
