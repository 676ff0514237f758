"""Correlation-ID middleware: lấy X-Correlation-ID từ header hoặc tạo mới, bind vào structlog context."""
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

HEADER_CORRELATION_ID = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Mọi log trong request mang correlation_id (và user_id nếu có X-User-ID)."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(HEADER_CORRELATION_ID, "").strip() or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
        user_id = request.headers.get("X-User-ID", "").strip()
        if user_id:
            structlog.contextvars.bind_contextvars(user_id=user_id)

        response = await call_next(request)
        response.headers[HEADER_CORRELATION_ID] = correlation_id
        return response
