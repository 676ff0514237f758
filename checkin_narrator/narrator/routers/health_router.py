"""Liveness (/health) và readiness (/readyz: DB + Redis nếu có cấu hình)."""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from narrator import __version__
from narrator.config import get_settings
from narrator.db import get_db
from narrator.infrastructure.background import get_dispatcher
from narrator.logging_config import get_logger

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/health")
def health() -> dict:
    """Process đang chạy. Luôn 200."""
    dispatcher = get_dispatcher()
    return {
        "status": "ok",
        "version": __version__,
        "telemetry": {"dropped": dispatcher.dropped, "failed": dispatcher.failed},
    }


@router.get("/readyz")
async def readyz(db: AsyncSession = Depends(get_db)):
    """200 khi DB (và Redis nếu có REDIS_URL) sẵn sàng, 503 nếu không."""
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("readyz.db_fail", error=str(e))
        return JSONResponse(status_code=503, content={"status": "unhealthy", "db": "fail"})

    settings = get_settings()
    if settings.redis_url:
        from redis.asyncio import Redis
        from redis.exceptions import RedisError

        client = Redis.from_url(settings.redis_url, decode_responses=True)
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.warning("readyz.redis_fail", error=str(e))
            return JSONResponse(status_code=503, content={"status": "unhealthy", "redis": "fail"})
        finally:
            await client.aclose()
        return {"status": "ok", "db": "ok", "redis": "ok"}
    return {"status": "ok", "db": "ok"}
