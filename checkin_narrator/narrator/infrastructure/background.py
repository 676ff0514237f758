"""
Fire-and-forget dispatcher cho side effect best-effort (ghi token usage).

Hàng đợi asyncio có giới hạn + một consumer task. submit() không bao giờ block
và không bao giờ ném lỗi: đầy hàng đợi thì bỏ việc và log warning; việc lỗi
được log rồi bỏ qua. Luồng sinh bài vì vậy không phụ thuộc vào telemetry.
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional

from narrator.logging_config import get_logger

logger = get_logger(__name__)

Work = Callable[[], Awaitable[Any]]


class BackgroundDispatcher:
    """Bounded queue + consumer task (start/stop theo lifespan)."""

    def __init__(self, maxsize: int = 1000) -> None:
        self._maxsize = maxsize
        self._queue: Optional["asyncio.Queue[tuple[str, Work]]"] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.dropped = 0
        self.failed = 0

    @property
    def running(self) -> bool:
        if self._task is None or self._task.done():
            return False
        try:
            return self._loop is asyncio.get_running_loop()
        except RuntimeError:
            return False

    def start(self) -> None:
        """Khởi động consumer trên event loop hiện tại (gọi lại sau khi loop cũ đã đóng cũng được)."""
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self._maxsize)
        self._task = asyncio.create_task(self._consume(), name="telemetry-dispatcher")
        logger.info("telemetry.started", maxsize=self._maxsize)

    def submit(self, name: str, work: Work) -> bool:
        """Đưa việc vào hàng đợi; False nếu bị bỏ (đầy hoặc không có event loop)."""
        try:
            if not self.running:
                self.start()
            assert self._queue is not None
            self._queue.put_nowait((name, work))
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("telemetry.dropped", work=name, reason="queue_full")
            return False
        except RuntimeError as e:
            self.dropped += 1
            logger.warning("telemetry.dropped", work=name, reason=str(e))
            return False

    async def _consume(self) -> None:
        assert self._queue is not None
        while True:
            name, work = await self._queue.get()
            try:
                await work()
            except Exception as e:
                self.failed += 1
                logger.warning("telemetry.work_failed", work=name, error=str(e))
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Chờ xử lý hết việc đang trong hàng đợi (dùng cho test và shutdown)."""
        if self._queue is not None and self.running:
            await self._queue.join()

    async def stop(self) -> None:
        if not self.running:
            self._task = None
            self._queue = None
            return
        try:
            await asyncio.wait_for(self.drain(), timeout=5)
        except asyncio.TimeoutError:
            logger.warning("telemetry.drain_timeout")
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._queue = None
        logger.info("telemetry.stopped", dropped=self.dropped, failed=self.failed)


_dispatcher: Optional[BackgroundDispatcher] = None


def get_dispatcher() -> BackgroundDispatcher:
    """Dispatcher dùng chung của process."""
    global _dispatcher
    if _dispatcher is None:
        from narrator.config import get_settings

        _dispatcher = BackgroundDispatcher(maxsize=get_settings().telemetry_queue_size)
    return _dispatcher
