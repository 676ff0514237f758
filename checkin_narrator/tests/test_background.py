"""Telemetry dispatcher: fire-and-forget, không block, không ném lỗi."""
import pytest

from narrator.infrastructure.background import BackgroundDispatcher


@pytest.mark.asyncio
async def test_submitted_work_runs() -> None:
    dispatcher = BackgroundDispatcher(maxsize=10)
    done = []

    async def work() -> None:
        done.append(1)

    assert dispatcher.submit("w", work) is True
    await dispatcher.drain()
    assert done == [1]
    await dispatcher.stop()


@pytest.mark.asyncio
async def test_failed_work_is_counted_not_raised() -> None:
    dispatcher = BackgroundDispatcher(maxsize=10)

    async def boom() -> None:
        raise RuntimeError("db down")

    dispatcher.submit("boom", boom)
    await dispatcher.drain()
    assert dispatcher.failed == 1
    await dispatcher.stop()


@pytest.mark.asyncio
async def test_full_queue_drops_work() -> None:
    dispatcher = BackgroundDispatcher(maxsize=1)
    dispatcher.start()

    async def noop() -> None:
        return None

    # Consumer chưa chạy (chưa yield về event loop): item thứ hai không vào được.
    assert dispatcher.submit("a", noop) is True
    assert dispatcher.submit("b", noop) is False
    assert dispatcher.dropped == 1
    await dispatcher.stop()


@pytest.mark.asyncio
async def test_stop_is_idempotent() -> None:
    dispatcher = BackgroundDispatcher()
    await dispatcher.stop()
    dispatcher.start()
    assert dispatcher.running is True
    await dispatcher.stop()
    assert dispatcher.running is False
