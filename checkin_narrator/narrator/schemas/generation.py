"""Schemas cho sinh bài (daily / weekly / monthly), version và platform post."""
import datetime as dt
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


class PostTypeEnum(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class GenerateRequest(BaseModel):
    """Body cho POST /generation/{daily|weekly|monthly}. date bỏ trống = hôm nay (timezone của user)."""

    date: Optional[dt.date] = Field(default=None, description="Ngày trong kỳ cần sinh (YYYY-MM-DD)")

    model_config = {"extra": "forbid"}


class PlatformPostOut(BaseModel):
    id: UUID
    post_id: UUID
    platform: str
    content: str
    hashtags: List[str] = Field(default_factory=list)
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = {"from_attributes": True}


class GeneratedPostOut(BaseModel):
    id: UUID
    user_id: UUID
    type: str
    date: dt.date
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("metadata_", "metadata"))
    version: int
    is_latest: bool
    generation_type: str
    model_used: Optional[str] = None
    created_at: dt.datetime

    model_config = {"from_attributes": True}


class GeneratedPostWithPlatformsOut(GeneratedPostOut):
    platform_posts: List[PlatformPostOut] = Field(default_factory=list)


class CompleteGenerationResponse(BaseModel):
    """Kết quả orchestrator: bài gốc + platform post thành công + lỗi theo nền tảng."""

    post: GeneratedPostOut
    platform_posts: List[PlatformPostOut] = Field(default_factory=list)
    generated: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
    errors: Dict[str, str] = Field(default_factory=dict)


class PostVersionsResponse(BaseModel):
    latest: GeneratedPostWithPlatformsOut
    versions: List[GeneratedPostOut]


class PostListItem(GeneratedPostOut):
    """platform_posts = None khi không yêu cầu include_platforms."""

    platform_posts: Optional[List[PlatformPostOut]] = None


class PostListResponse(BaseModel):
    items: List[PostListItem]
    limit: int
    offset: int


class RegenerationStatsOut(BaseModel):
    used: int
    limit: int
    remaining: int


class TokenUsageOut(BaseModel):
    since: dt.datetime
    total_tokens: int


class PlatformPostUpdate(BaseModel):
    content: str = Field(..., min_length=1, description="Nội dung mới")

    model_config = {"extra": "forbid"}
