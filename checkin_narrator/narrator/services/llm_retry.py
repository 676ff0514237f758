"""
Retry + timeout cho mọi lời gọi provider LLM (tenacity).

- Mỗi attempt bị giới hạn bởi asyncio.wait_for(timeout).
- Backoff mũ: base_delay, 2*base_delay, ... tối đa max_delay.
- Lỗi phía client (4xx trừ 408/409/429, request không hợp lệ) không retry.
- Hết lượt -> ProviderError("LLM call failed after N attempts: ...").
"""
import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from narrator.errors import ProviderClientError, ProviderError, ValidationError
from narrator.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 1.0
DEFAULT_MAX_DELAY_SECONDS = 10.0
DEFAULT_TIMEOUT_SECONDS = 60.0

# 4xx vẫn nên retry: timeout phía server, conflict tạm thời, rate limit.
_RETRYABLE_CLIENT_STATUSES = frozenset({408, 409, 429})


class LLMTimeoutError(ProviderError):
    """Một attempt vượt timeout; cùng code PROVIDER_ERROR để retry sweep xử lý như lỗi provider."""


def _status_code(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status", "statusCode"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def is_retryable(exc: BaseException) -> bool:
    """False cho lỗi client (retry cũng vô ích); True cho timeout, lỗi mạng, 5xx, 429."""
    if isinstance(exc, (ProviderClientError, ValidationError)):
        return False
    code = _status_code(exc)
    if code is not None and 400 <= code < 500 and code not in _RETRYABLE_CLIENT_STATUSES:
        return False
    return True


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
    max_delay: float = DEFAULT_MAX_DELAY_SECONDS,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "llm",
) -> T:
    """
    Gọi operation() với timeout từng attempt và retry có backoff.
    sleep inject được để test không phải chờ thời gian thật.
    Lỗi không retry được ném nguyên trạng ngay ở attempt đầu.
    """

    async def _attempt() -> T:
        try:
            return await asyncio.wait_for(operation(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise LLMTimeoutError("LLM request timeout") from e

    def _before_sleep(retry_state) -> None:  # noqa: ANN001
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "llm.retry",
            label=label,
            attempt=retry_state.attempt_number,
            next_delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(exc),
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=base_delay, min=base_delay, max=max_delay),
        retry=retry_if_exception(is_retryable),
        sleep=sleep,
        before_sleep=_before_sleep,
        reraise=False,
    )
    try:
        return await retrying(_attempt)
    except RetryError as e:
        last = e.last_attempt.exception()
        attempts = e.last_attempt.attempt_number
        logger.warning("llm.retry_exhausted", label=label, attempts=attempts, error=str(last))
        raise ProviderError(f"LLM call failed after {attempts} attempts: {last}") from last
