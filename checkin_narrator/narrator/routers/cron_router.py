"""
Trigger từ cron service bên ngoài (thay cho / song song với scheduler nội bộ).
Mọi endpoint POST yêu cầu X-Cron-Secret; lỗi xử lý -> 500 kèm message.
"""

from fastapi import APIRouter, Depends

from narrator.clock import utcnow
from narrator.config import get_settings
from narrator.logging_config import get_logger
from narrator.routers.deps import error_response, verify_cron_secret
from narrator.schemas.scheduler import CheckSchedulesResponse, CronHealthResponse, ProcessJobsResponse
from narrator.services.scheduler_service import get_scheduler

router = APIRouter(prefix="/cron", tags=["cron"])
logger = get_logger(__name__)


@router.post(
    "/check-schedules",
    response_model=CheckSchedulesResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def check_schedules():
    """Chạy một lượt schedule evaluator: tạo job cho các kỳ đến hạn."""
    try:
        summary = await get_scheduler().evaluate_once()
    except Exception as e:
        logger.error("cron.check_schedules_failed", error=str(e))
        return error_response(e)
    logger.info("cron.check_schedules", **summary.as_dict())
    return CheckSchedulesResponse(
        checked=summary.checked,
        matched=summary.matched,
        created=summary.created,
        skipped=summary.skipped,
        timestamp=utcnow(),
    )


@router.post(
    "/process-jobs",
    response_model=ProcessJobsResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def process_jobs():
    """Xử lý job PENDING rồi chạy maintenance (stalled / retry / prune)."""
    scheduler = get_scheduler()
    try:
        worker = await scheduler.process_once()
        maintenance = await scheduler.maintain_once()
    except Exception as e:
        logger.error("cron.process_jobs_failed", error=str(e))
        return error_response(e)
    return ProcessJobsResponse(
        claimed=worker.claimed,
        completed=worker.completed,
        failed=worker.failed,
        stalled=maintenance.stalled,
        pruned=maintenance.pruned,
        requeued=maintenance.requeued,
        timestamp=utcnow(),
    )


@router.post("/maintenance", dependencies=[Depends(verify_cron_secret)])
async def maintenance() -> dict:
    """Chỉ chạy maintenance."""
    try:
        summary = await get_scheduler().maintain_once()
    except Exception as e:
        logger.error("cron.maintenance_failed", error=str(e))
        return error_response(e)
    return {"success": True, **summary.as_dict(), "timestamp": utcnow().isoformat()}


@router.get("/health", response_model=CronHealthResponse)
def cron_health() -> CronHealthResponse:
    """Không cần secret: cho biết cron đã được cấu hình chưa."""
    settings = get_settings()
    return CronHealthResponse(
        status="ok",
        cron_configured=bool(settings.cron_secret),
        internal_scheduler=settings.scheduler_enabled,
        timestamp=utcnow(),
    )
