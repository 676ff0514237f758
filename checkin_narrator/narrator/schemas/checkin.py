"""Schemas cho check-in."""
from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from narrator.models.check_in import CHECK_IN_MAX_LENGTH


class CheckInCreate(BaseModel):
    content: str = Field(..., description="Nội dung check-in (1..1500 ký tự sau khi trim)")

    model_config = {"extra": "forbid"}

    @field_validator("content")
    @classmethod
    def content_length(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("content cannot be empty")
        if len(v) > CHECK_IN_MAX_LENGTH:
            raise ValueError(f"content must be at most {CHECK_IN_MAX_LENGTH} characters")
        return v


class CheckInOut(BaseModel):
    id: UUID
    user_id: UUID
    content: str
    created_at: datetime

    model_config = {"from_attributes": True}


class CheckInListResponse(BaseModel):
    items: List[CheckInOut]
