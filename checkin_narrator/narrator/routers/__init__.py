"""API routers."""
from narrator.routers.health_router import router as health_router
from narrator.routers.checkin_router import router as checkin_router
from narrator.routers.schedule_router import router as schedule_router
from narrator.routers.generation_router import router as generation_router
from narrator.routers.platform_router import router as platform_router
from narrator.routers.scheduler_router import router as scheduler_router
from narrator.routers.cron_router import router as cron_router

__all__ = [
    "health_router",
    "checkin_router",
    "schedule_router",
    "generation_router",
    "platform_router",
    "scheduler_router",
    "cron_router",
]
