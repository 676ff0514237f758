"""
Sinh bài thủ công, regenerate, xem version và danh sách bài.
User hiện tại: header X-User-ID. Mọi đường sinh bài đều chịu giới hạn REGENERATION_DAILY_LIMIT / ngày.
"""
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from narrator.clock import utcnow
from narrator.config import get_settings
from narrator.db import get_db
from narrator.errors import ValidationError
from narrator.models import GeneratedPost
from narrator.models.generated_post import POST_TYPES
from narrator.routers.deps import get_current_user_id, get_llm_service
from narrator.schemas.generation import (
    CompleteGenerationResponse,
    GeneratedPostOut,
    GeneratedPostWithPlatformsOut,
    GenerateRequest,
    PlatformPostOut,
    PostListItem,
    PostListResponse,
    PostVersionsResponse,
    RegenerationStatsOut,
    TokenUsageOut,
)
from narrator.services.llm_service import LLMService
from narrator.services.narrative_service import get_user_timezone_name
from narrator.services.orchestrator_service import (
    CompleteGenerationResult,
    get_post_with_versions,
    list_latest_posts,
    manual_generate,
    regenerate_post,
)
from narrator.services.regeneration_limiter import get_regeneration_stats
from narrator.services.token_usage_service import get_total_tokens_since
from narrator.utils.query_params import ensure_bool_query
from narrator.utils.time_windows import resolve_timezone, start_of_local_day_utc

router = APIRouter(prefix="/generation", tags=["generation"])


def _post_type(value: str) -> str:
    post_type = value.upper()
    if post_type not in POST_TYPES:
        raise ValidationError(f"Unsupported post type: {value}", details={"allowed": list(POST_TYPES)})
    return post_type


async def _today_for_user(db: AsyncSession, user_id: UUID) -> date:
    tz_name = await get_user_timezone_name(db, user_id)
    return utcnow().astimezone(resolve_timezone(tz_name, get_settings().default_timezone)).date()


def complete_response(result: CompleteGenerationResult) -> CompleteGenerationResponse:
    return CompleteGenerationResponse(
        post=GeneratedPostOut.model_validate(result.base_post),
        platform_posts=[PlatformPostOut.model_validate(pp) for pp in result.platform_posts],
        generated=result.generated,
        failed=result.failed,
        errors=result.errors,
    )


@router.get("/regen-status", response_model=RegenerationStatsOut)
async def regeneration_status(
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> RegenerationStatsOut:
    """Số lần sinh thủ công đã dùng / giới hạn / còn lại trong ngày."""
    stats = await get_regeneration_stats(db, user_id)
    return RegenerationStatsOut(**stats.as_dict())


@router.get("/usage", response_model=TokenUsageOut)
async def token_usage(
    since: Optional[datetime] = Query(None, description="Mốc bắt đầu (ISO 8601); mặc định 00:00 hôm nay"),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> TokenUsageOut:
    """Tổng token đã dùng kể từ `since`."""
    if since is None:
        since = start_of_local_day_utc(utcnow(), resolve_timezone(get_settings().default_timezone))
    total = await get_total_tokens_since(db, user_id, since)
    return TokenUsageOut(since=since, total_tokens=total)


@router.get("/posts", response_model=PostListResponse)
async def list_posts(
    type: Optional[str] = Query(None, description="DAILY | WEEKLY | MONTHLY"),
    include_platforms: bool | str | None = Query(False, description="Kèm platform posts"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> PostListResponse:
    """Bản latest của từng bài, mới nhất trước."""
    include = ensure_bool_query(include_platforms)
    posts = await list_latest_posts(
        db,
        user_id,
        post_type=_post_type(type) if type else None,
        limit=limit,
        offset=offset,
        include_platforms=include,
    )
    items = []
    for post in posts:
        item = PostListItem.model_validate(GeneratedPostOut.model_validate(post).model_dump())
        if include:
            item.platform_posts = [PlatformPostOut.model_validate(pp) for pp in post.platform_posts]
        items.append(item)
    return PostListResponse(items=items, limit=limit, offset=offset)


@router.post("/posts/{post_id}/regenerate", response_model=GeneratedPostOut, status_code=status.HTTP_201_CREATED)
async def regenerate(
    post_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    llm: LLMService = Depends(get_llm_service),
) -> GeneratedPostOut:
    """Sinh version mới cho bài gốc (không đụng platform posts)."""
    post: GeneratedPost = await regenerate_post(db, post_id, user_id, llm=llm)
    return GeneratedPostOut.model_validate(post)


@router.post("/{post_type}", response_model=CompleteGenerationResponse, status_code=status.HTTP_201_CREATED)
async def generate(
    post_type: str,
    body: Optional[GenerateRequest] = Body(None),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    llm: LLMService = Depends(get_llm_service),
) -> CompleteGenerationResponse:
    """
    Sinh thủ công DAILY / WEEKLY / MONTHLY cho kỳ chứa `date` (mặc định hôm nay),
    rồi chuyển thể cho các nền tảng đang bật.
    """
    kind = _post_type(post_type)
    target = body.date if body and body.date else await _today_for_user(db, user_id)
    result = await manual_generate(db, user_id, kind, target, llm=llm)
    return complete_response(result)


@router.get("/{post_type}/{target_date}", response_model=GeneratedPostWithPlatformsOut)
async def get_post(
    post_type: str,
    target_date: date,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> GeneratedPostWithPlatformsOut:
    """Bản latest (kèm platform posts) của kỳ chứa target_date."""
    latest, _ = await get_post_with_versions(db, user_id, _post_type(post_type), target_date)
    return GeneratedPostWithPlatformsOut.model_validate(latest)


@router.get("/{post_type}/{target_date}/versions", response_model=PostVersionsResponse)
async def get_versions(
    post_type: str,
    target_date: date,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> PostVersionsResponse:
    """Tất cả version của kỳ, version giảm dần."""
    latest, versions = await get_post_with_versions(db, user_id, _post_type(post_type), target_date)
    return PostVersionsResponse(
        latest=GeneratedPostWithPlatformsOut.model_validate(latest),
        versions=[GeneratedPostOut.model_validate(v) for v in versions],
    )
