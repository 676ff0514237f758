"""
Scheduler nội bộ: ba vòng lặp độc lập chạy trong process FastAPI.
- evaluator (SCHEDULER_INTERVAL_SECONDS): tạo job cho kỳ đến hạn.
- worker (WORKER_INTERVAL_SECONDS): xử lý job PENDING.
- maintenance (MAINTENANCE_INTERVAL_SECONDS): stalled / retry / prune.
Clock và sleep inject được để test điều khiển thời gian.
ENV: SCHEDULER_ENABLED, SCHEDULER_INTERVAL_SECONDS, WORKER_INTERVAL_SECONDS, MAINTENANCE_INTERVAL_SECONDS.
"""
import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from narrator.clock import Clock, SystemClock
from narrator.config import Settings, get_settings
from narrator.logging_config import get_logger
from narrator.services.job_service import (
    MaintenanceSummary,
    WorkerSummary,
    count_pending_jobs,
    process_pending_jobs,
    run_maintenance,
)
from narrator.services.llm_service import LLMService
from narrator.services.schedule_evaluator import EvaluationSummary, evaluate_schedules

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class GenerationScheduler:
    """Vòng đời start/stop cho evaluator, worker và maintenance."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        sleep: Sleep = asyncio.sleep,
        session_factory: Optional[async_sessionmaker] = None,
        llm: Optional[LLMService] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()
        self._sleep = sleep
        self._session_factory = session_factory
        self._llm = llm
        self._tasks: List[asyncio.Task[None]] = []
        self._stop_event: Optional[asyncio.Event] = None
        self.last_ticks: Dict[str, Optional[datetime]] = {"evaluator": None, "worker": None, "maintenance": None}

    @property
    def session_factory(self) -> async_sessionmaker:
        if self._session_factory is None:
            from narrator.db import async_session_factory

            self._session_factory = async_session_factory
        return self._session_factory

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    async def evaluate_once(self) -> EvaluationSummary:
        now = self.clock.now()
        self.last_ticks["evaluator"] = now
        async with self.session_factory() as db:
            return await evaluate_schedules(db, now=now)

    async def process_once(self) -> WorkerSummary:
        self.last_ticks["worker"] = self.clock.now()
        return await process_pending_jobs(
            session_factory=self.session_factory,
            llm=self._llm,
            batch_size=self.settings.worker_batch_size,
            concurrency=self.settings.worker_concurrency,
            job_types=self.settings.worker_job_types,
            clock=self.clock.now,
        )

    async def maintain_once(self) -> MaintenanceSummary:
        now = self.clock.now()
        self.last_ticks["maintenance"] = now
        async with self.session_factory() as db:
            return await run_maintenance(db, now=now)

    async def run_once(self) -> dict:
        """Một lượt đầy đủ theo thứ tự evaluator -> worker -> maintenance (dùng cho cron và test)."""
        evaluation = await self.evaluate_once()
        worker = await self.process_once()
        maintenance = await self.maintain_once()
        return {
            "evaluation": evaluation.as_dict(),
            "worker": worker.as_dict(),
            "maintenance": maintenance.as_dict(),
        }

    async def _loop(self, name: str, interval: int, tick: Callable[[], Awaitable[object]]) -> None:
        assert self._stop_event is not None
        interval = max(1, interval)
        while not self._stop_event.is_set():
            try:
                await tick()
            except Exception as e:
                logger.warning("scheduler.loop_error", loop=name, error=str(e))
            if self._stop_event.is_set():
                break
            await self._sleep(interval)

    async def start(self) -> None:
        """Khởi động ba vòng lặp (gọi từ lifespan startup). Gọi lại khi đang chạy thì bỏ qua."""
        if self.running:
            return
        if not self.settings.scheduler_enabled:
            logger.info("scheduler.disabled")
            return
        self._stop_event = asyncio.Event()
        self._tasks = [
            asyncio.create_task(
                self._loop("evaluator", self.settings.scheduler_interval_seconds, self.evaluate_once),
                name="scheduler-evaluator",
            ),
            asyncio.create_task(
                self._loop("worker", self.settings.worker_interval_seconds, self.process_once),
                name="scheduler-worker",
            ),
            asyncio.create_task(
                self._loop("maintenance", self.settings.maintenance_interval_seconds, self.maintain_once),
                name="scheduler-maintenance",
            ),
        ]
        logger.info(
            "scheduler.started",
            interval_seconds=self.settings.scheduler_interval_seconds,
            worker_interval_seconds=self.settings.worker_interval_seconds,
            maintenance_interval_seconds=self.settings.maintenance_interval_seconds,
            job_types=self.settings.worker_job_types,
        )

    async def stop(self) -> None:
        """Dừng cả ba vòng lặp; job đang chạy bị hủy và sẽ được maintenance đánh FAILED nếu treo."""
        if self._stop_event:
            self._stop_event.set()
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        was_running = bool(self._tasks)
        self._tasks = []
        if was_running:
            logger.info("scheduler.stopped")

    def status(self) -> dict:
        return {
            "enabled": self.settings.scheduler_enabled,
            "running": self.running,
            "interval_seconds": self.settings.scheduler_interval_seconds,
            "worker_interval_seconds": self.settings.worker_interval_seconds,
            "job_types": self.settings.worker_job_types,
            "last_tick_at": self._iso(self.last_ticks["evaluator"]),
            "last_worker_tick_at": self._iso(self.last_ticks["worker"]),
            "last_maintenance_at": self._iso(self.last_ticks["maintenance"]),
            "pending_count": None,
        }

    async def status_with_pending(self, db: AsyncSession) -> dict:
        out = self.status()
        out["pending_count"] = await count_pending_jobs(db)
        return out

    @staticmethod
    def _iso(value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value else None


_scheduler: Optional[GenerationScheduler] = None


def get_scheduler() -> GenerationScheduler:
    """Scheduler dùng chung của process."""
    global _scheduler
    if _scheduler is None:
        _scheduler = GenerationScheduler()
    return _scheduler


async def start_scheduler(app: object) -> None:
    """Khởi động scheduler (gọi từ lifespan startup)."""
    await get_scheduler().start()


async def stop_scheduler() -> None:
    """Dừng scheduler (lifespan shutdown)."""
    if _scheduler is not None:
        await _scheduler.stop()
