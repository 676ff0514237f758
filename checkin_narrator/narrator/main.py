"""FastAPI application entrypoint."""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from narrator import __version__
from narrator.errors import NarratorError, narrator_exception_handler, unhandled_exception_handler
from narrator.infrastructure.background import get_dispatcher
from narrator.logging_config import configure_logging, get_logger
from narrator.middleware.correlation_id import CorrelationIdMiddleware
from narrator.middleware.rate_limit import RateLimitMiddleware
from narrator.routers import (
    checkin_router,
    cron_router,
    generation_router,
    health_router,
    platform_router,
    schedule_router,
    scheduler_router,
)
from narrator.services.scheduler_service import start_scheduler, stop_scheduler

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown: logging, telemetry dispatcher, scheduler."""
    configure_logging()
    logger.info("app_started", version=__version__)
    dispatcher = get_dispatcher()
    dispatcher.start()
    await start_scheduler(app)
    yield
    await stop_scheduler()
    await dispatcher.stop()
    logger.info("app_shutdown")


app = FastAPI(
    title="Check-in Narrator",
    version=__version__,
    lifespan=lifespan,
)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_exception_handler(NarratorError, narrator_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(health_router)
app.include_router(checkin_router)
app.include_router(schedule_router)
app.include_router(generation_router)
app.include_router(platform_router)
app.include_router(scheduler_router)
app.include_router(cron_router)


@app.get("/")
def root() -> dict[str, str]:
    """Root endpoint: app name and version."""
    return {"name": "checkin_narrator", "version": __version__}
