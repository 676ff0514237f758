"""Platform posts (X / LinkedIn / Reddit) và platform settings."""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from narrator.db import get_db
from narrator.routers.deps import get_current_user_id, get_llm_service
from narrator.routers.generation_router import complete_response
from narrator.schemas.generation import CompleteGenerationResponse, PlatformPostOut, PlatformPostUpdate
from narrator.schemas.settings import PlatformSettingsOut, PlatformSettingsUpdate
from narrator.services.llm_service import LLMService
from narrator.services.orchestrator_service import regenerate_platform_posts, update_platform_post
from narrator.services.settings_service import get_or_create_platform_settings, update_platform_settings

router = APIRouter(prefix="/platform", tags=["platform"])


@router.post(
    "/posts/{post_id}/generate",
    response_model=CompleteGenerationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_platform_posts(
    post_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    llm: LLMService = Depends(get_llm_service),
) -> CompleteGenerationResponse:
    """Xóa platform posts hiện có của bài rồi chuyển thể lại cho các nền tảng đang bật."""
    result = await regenerate_platform_posts(db, post_id, user_id, llm=llm)
    return complete_response(result)


@router.put("/posts/{platform_post_id}", response_model=PlatformPostOut)
async def edit_platform_post(
    platform_post_id: UUID,
    body: PlatformPostUpdate,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> PlatformPostOut:
    """Sửa tay nội dung; không được vượt giới hạn ký tự của nền tảng."""
    pp = await update_platform_post(db, platform_post_id, user_id, body.content)
    return PlatformPostOut.model_validate(pp)


@router.get("/settings", response_model=PlatformSettingsOut)
async def get_platform_settings(
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> PlatformSettingsOut:
    row = await get_or_create_platform_settings(db, user_id)
    return PlatformSettingsOut.model_validate(row)


@router.put("/settings", response_model=PlatformSettingsOut)
async def put_platform_settings(
    body: PlatformSettingsUpdate,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> PlatformSettingsOut:
    row = await update_platform_settings(db, user_id, body.model_dump(exclude_none=True))
    return PlatformSettingsOut.model_validate(row)
