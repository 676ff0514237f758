"""Dependencies dùng chung cho routers: user hiện tại, LLM service, cron secret."""
import hmac
from functools import lru_cache
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from narrator.config import get_settings
from narrator.db import get_db
from narrator.errors import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    NotFoundError,
    ValidationError,
)
from narrator.logging_config import get_logger
from narrator.models import User
from narrator.services.llm_service import LLMService

logger = get_logger(__name__)


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
    db: AsyncSession = Depends(get_db),
) -> UUID:
    """
    User hiện tại từ header X-User-ID (auth do gateway upstream xử lý).
    Thiếu header -> 403; không phải UUID -> 400; user không tồn tại -> 404.
    """
    if not x_user_id or not x_user_id.strip():
        raise AuthorizationError("X-User-ID header required")
    try:
        user_id = UUID(x_user_id.strip())
    except ValueError:
        raise ValidationError("X-User-ID must be a UUID", details={"x_user_id": x_user_id})
    if await db.get(User, user_id) is None:
        raise NotFoundError("User not found", details={"user_id": str(user_id)})
    return user_id


@lru_cache
def _default_llm() -> LLMService:
    return LLMService(get_settings())


def get_llm_service() -> LLMService:
    """LLM service dùng chung; test override qua app.dependency_overrides."""
    return _default_llm()


def verify_cron_secret(x_cron_secret: Optional[str] = Header(None, alias="X-Cron-Secret")) -> None:
    """CRON_SECRET chưa set -> 500; header sai -> 401."""
    expected = get_settings().cron_secret
    if not expected:
        logger.error("cron.secret_not_configured")
        raise ConfigurationError("CRON_SECRET is not configured")
    if not x_cron_secret or not hmac.compare_digest(x_cron_secret, expected):
        logger.warning("cron.unauthorized")
        raise AuthenticationError("Unauthorized")


def error_response(exc: Exception) -> JSONResponse:
    """500 kèm message lỗi cho các endpoint cron/operator."""
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})
