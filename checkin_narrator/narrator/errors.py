"""
Exception hierarchy cho Check-in Narrator.

Mỗi lỗi có `code` (machine-readable) và `http_status`; client rẽ nhánh theo code,
không parse message tiếng Anh. Worker bắt mọi lỗi theo từng job và lưu `error_kind`.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette import status

from narrator.logging_config import get_logger

logger = get_logger(__name__)


class NarratorError(Exception):
    """Base class for all application-level errors."""

    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(NarratorError):
    http_status = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class NotFoundError(NarratorError):
    """Không có input hoặc resource; với worker nghĩa là dependency chưa sẵn sàng."""

    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class AuthenticationError(NarratorError):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"


class AuthorizationError(NarratorError):
    http_status = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class ConfigurationError(NarratorError):
    """Thiếu cấu hình bắt buộc (vd CRON_SECRET)."""

    code = "CONFIGURATION_ERROR"


class RateLimitError(NarratorError):
    http_status = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, used: int, limit: int, remaining: int = 0):
        super().__init__(
            message=f"Daily regeneration limit reached ({used}/{limit}).",
            details={"used": used, "limit": limit, "remaining": remaining},
        )


class DatabaseError(NarratorError):
    code = "DATABASE_ERROR"


class ProviderError(NarratorError):
    """Provider LLM lỗi (timeout, 5xx, hết lượt retry)."""

    http_status = status.HTTP_502_BAD_GATEWAY
    code = "PROVIDER_ERROR"


class ProviderClientError(ProviderError):
    """Lỗi phía client (request sai, auth sai): retry không giúp được."""

    code = "PROVIDER_CLIENT_ERROR"


class GenerationFailedError(NarratorError):
    """Lỗi tổng quát trả về cho đường interactive; chi tiết provider chỉ nằm trong log."""

    code = "GENERATION_FAILED"

    def __init__(self, message: str = "Generation failed. Please try again later."):
        super().__init__(message=message)


def error_kind(exc: BaseException) -> str:
    """Phân loại lỗi cho generation_jobs.error_kind."""
    if isinstance(exc, NarratorError):
        return exc.code
    if isinstance(exc, TimeoutError):
        return "TIMEOUT"
    return "UNEXPECTED"


# Các error_kind mà retry sweep được phép đưa lại về PENDING.
RETRYABLE_JOB_ERROR_KINDS = frozenset({
    ProviderError.code,
    DatabaseError.code,
    GenerationFailedError.code,
    "TIMEOUT",
    "STALLED",
    "UNEXPECTED",
})


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def narrator_exception_handler(request: Request, exc: NarratorError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.warning("http.error", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("http.unhandled_error", path=request.url.path, error=str(exc), exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
