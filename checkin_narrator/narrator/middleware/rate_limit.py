"""
Rate limit middleware: Redis sliding window, key theo X-User-ID.
RATE_LIMIT_PER_MIN request / phút / user. Không có REDIS_URL thì bỏ qua (không block).
Khác với giới hạn sinh bài thủ công (regeneration_limiter): đây là giới hạn request HTTP.
"""
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from narrator.config import get_settings
from narrator.logging_config import get_logger

logger = get_logger(__name__)

REDIS_KEY_PREFIX = "rl:"
WINDOW_SECONDS = 60


def _rate_limit_key(request: Request) -> Optional[str]:
    user = request.headers.get("X-User-ID", "").strip()
    return f"user:{user[:64]}" if user else None


async def check_sliding_window(client: Redis, key: str, limit: int, now: Optional[float] = None) -> bool:
    """
    ZADD now, ZREMRANGEBYSCORE -inf (now-60), ZCARD.
    True nếu request còn trong limit.
    """
    now = now if now is not None else time.time()
    rkey = REDIS_KEY_PREFIX + key
    pipe = client.pipeline()
    pipe.zadd(rkey, {str(uuid.uuid4()): now})
    pipe.zremrangebyscore(rkey, "-inf", now - WINDOW_SECONDS)
    pipe.zcard(rkey)
    pipe.expire(rkey, WINDOW_SECONDS + 10)
    results = await pipe.execute()
    count = results[2] if len(results) > 2 else 0
    return count <= limit


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Giới hạn request theo user (Redis sliding window). Redis lỗi -> cho qua."""

    def __init__(self, app, redis_client: Optional[Redis] = None) -> None:  # noqa: ANN001
        super().__init__(app)
        self._client = redis_client

    def _get_client(self, redis_url: str) -> Redis:
        if self._client is None:
            self._client = Redis.from_url(redis_url, decode_responses=True)
        return self._client

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        settings = get_settings()
        if not settings.redis_url and self._client is None:
            return await call_next(request)
        key = _rate_limit_key(request)
        if not key:
            return await call_next(request)
        limit = settings.rate_limit_per_min
        try:
            allowed = await check_sliding_window(self._get_client(settings.redis_url or ""), key, limit)
        except (RedisError, OSError) as e:
            logger.warning("rate_limit.redis_error", key=key, error=str(e))
            allowed = True
        if not allowed:
            logger.info("rate_limit.exceeded", key=key, limit=limit)
            return JSONResponse(
                status_code=429,
                content={"code": "RATE_LIMIT_EXCEEDED", "message": "Too many requests. Please slow down."},
            )
        return await call_next(request)
