"""Common schemas (errors, messages)."""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body lỗi chuẩn từ exception handler."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Extra context")


class MessageResponse(BaseModel):
    """Simple message response."""

    message: str = Field(..., description="Message text")
