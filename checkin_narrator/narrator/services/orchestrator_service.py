"""
Generation orchestrator: bài gốc -> chuyển thể cho từng nền tảng đang bật.

- generate_complete_*: dùng cho worker (AUTO) và manual (MANUAL).
- Lỗi ở một nền tảng không làm hỏng bài gốc hay các nền tảng khác; được gom vào kết quả.
- Đường interactive (manual_generate, regenerate_*) bọc DatabaseError / ProviderError
  thành GenerationFailedError; chi tiết chỉ nằm trong log.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Awaitable, Dict, List, Optional, Tuple, TypeVar
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from narrator.errors import (
    AuthorizationError,
    DatabaseError,
    GenerationFailedError,
    NotFoundError,
    ProviderError,
    ValidationError,
)
from narrator.logging_config import get_logger
from narrator.models import GeneratedPost, PlatformPost, PlatformSettings
from narrator.models.generated_post import POST_TYPE_DAILY, POST_TYPE_MONTHLY, POST_TYPE_WEEKLY, POST_TYPES
from narrator.services.llm_service import LLMService
from narrator.services.narrative_service import GENERATORS
from narrator.services.platform_adapter import adapt_for_platform, extract_hashtags, get_platform_spec
from narrator.services.regeneration_limiter import ensure_can_regenerate
from narrator.services.token_usage_service import record_token_usage
from narrator.services.tone_profile_service import ToneDirective, build_tone_directive, get_tone_profile
from narrator.utils.time_windows import period_start

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class CompleteGenerationResult:
    base_post: GeneratedPost
    platform_posts: List[PlatformPost] = field(default_factory=list)
    generated: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)


async def get_enabled_platforms(db: AsyncSession, user_id: UUID) -> List[str]:
    r = await db.execute(select(PlatformSettings).where(PlatformSettings.user_id == user_id))
    settings_row = r.scalar_one_or_none()
    return settings_row.enabled_platforms() if settings_row else []


async def _load_directive(db: AsyncSession, user_id: UUID) -> Optional[ToneDirective]:
    return build_tone_directive(await get_tone_profile(db, user_id))


async def _adapt_platforms(
    db: AsyncSession,
    user_id: UUID,
    post: GeneratedPost,
    platforms: List[str],
    tone: Optional[ToneDirective],
    llm: Optional[LLMService],
) -> Tuple[List[PlatformPost], List[str], List[str], Dict[str, str]]:
    """Chuyển thể + lưu từng nền tảng; mỗi nền tảng thành công được commit riêng."""
    post_id, content, metadata = post.id, post.content, dict(post.metadata_ or {})
    created: List[PlatformPost] = []
    generated: List[str] = []
    failed: List[str] = []
    errors: Dict[str, str] = {}
    rolled_back = False
    for platform in platforms:
        try:
            adapted = await adapt_for_platform(content, metadata, platform, tone, llm)
        except Exception as e:
            failed.append(platform)
            errors[platform] = str(e)
            logger.warning("platform.adapt_failed", post_id=str(post_id), platform=platform, error=str(e))
            continue
        try:
            pp = PlatformPost(post_id=post_id, platform=platform, content=adapted.content, hashtags=adapted.hashtags)
            db.add(pp)
            await db.flush()
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            rolled_back = True
            failed.append(platform)
            errors[platform] = f"Failed to save platform post: {e}"
            logger.warning("platform.save_failed", post_id=str(post_id), platform=platform, error=str(e))
            continue
        created.append(pp)
        generated.append(platform)
        if adapted.response is not None:
            record_token_usage(
                user_id,
                adapted.response,
                "platform-adapter",
                generated_post_id=post_id,
                platform_post_id=pp.id,
                platform=platform,
            )
    if rolled_back:
        # rollback expire toàn bộ object trong session; nạp lại trước khi trả về.
        await db.refresh(post)
        for pp in created:
            await db.refresh(pp)
    return created, generated, failed, errors


async def generate_complete(
    db: AsyncSession,
    user_id: UUID,
    post_type: str,
    target_date: date,
    is_manual: bool = False,
    llm: Optional[LLMService] = None,
) -> CompleteGenerationResult:
    """Bước 1: bài gốc (lỗi -> ném ra). Bước 2: chuyển thể cho các nền tảng đang bật."""
    generator = GENERATORS.get(post_type)
    if generator is None:
        raise ValidationError(f"Unsupported post type: {post_type}", details={"type": post_type})
    base_post = await generator(db, user_id, target_date, is_manual=is_manual, llm=llm)
    platforms = await get_enabled_platforms(db, user_id)
    tone = await _load_directive(db, user_id)
    created, generated, failed, errors = await _adapt_platforms(db, user_id, base_post, platforms, tone, llm)
    logger.info(
        "generation.complete",
        user_id=str(user_id),
        type=post_type,
        date=base_post.date.isoformat(),
        version=base_post.version,
        platforms_generated=generated,
        platforms_failed=failed,
    )
    return CompleteGenerationResult(
        base_post=base_post,
        platform_posts=created,
        generated=generated,
        failed=failed,
        errors=errors,
    )


async def generate_complete_daily(
    db: AsyncSession, user_id: UUID, target_date: date, is_manual: bool = False, llm: Optional[LLMService] = None
) -> CompleteGenerationResult:
    return await generate_complete(db, user_id, POST_TYPE_DAILY, target_date, is_manual, llm)


async def generate_complete_weekly(
    db: AsyncSession, user_id: UUID, target_date: date, is_manual: bool = False, llm: Optional[LLMService] = None
) -> CompleteGenerationResult:
    return await generate_complete(db, user_id, POST_TYPE_WEEKLY, target_date, is_manual, llm)


async def generate_complete_monthly(
    db: AsyncSession, user_id: UUID, target_date: date, is_manual: bool = False, llm: Optional[LLMService] = None
) -> CompleteGenerationResult:
    return await generate_complete(db, user_id, POST_TYPE_MONTHLY, target_date, is_manual, llm)


async def _interactive(action: str, awaitable: Awaitable[T]) -> T:
    """Lỗi hạ tầng / provider -> GenerationFailedError; các lỗi khác giữ nguyên."""
    try:
        return await awaitable
    except (DatabaseError, ProviderError) as e:
        logger.warning("generation.interactive_failed", action=action, code=e.code, error=e.message)
        raise GenerationFailedError() from e
    except SQLAlchemyError as e:
        logger.warning("generation.interactive_failed", action=action, code="DATABASE_ERROR", error=str(e))
        raise GenerationFailedError() from e


async def manual_generate(
    db: AsyncSession,
    user_id: UUID,
    post_type: str,
    target_date: date,
    llm: Optional[LLMService] = None,
    now: Optional[datetime] = None,
) -> CompleteGenerationResult:
    """Sinh thủ công (MANUAL): kiểm tra rate limit trước mọi lời gọi provider."""
    if post_type not in POST_TYPES:
        raise ValidationError(f"Unsupported post type: {post_type}", details={"type": post_type})
    await ensure_can_regenerate(db, user_id, now)
    return await _interactive(
        "manual_generate",
        generate_complete(db, user_id, post_type, period_start(post_type, target_date), is_manual=True, llm=llm),
    )


async def _get_owned_post(db: AsyncSession, post_id: UUID, user_id: UUID) -> GeneratedPost:
    post = await db.get(GeneratedPost, post_id)
    if post is None:
        raise NotFoundError("Post not found", details={"post_id": str(post_id)})
    if post.user_id != user_id:
        raise AuthorizationError("You do not have access to this post")
    return post


async def regenerate_post(
    db: AsyncSession,
    post_id: UUID,
    user_id: UUID,
    llm: Optional[LLMService] = None,
    now: Optional[datetime] = None,
) -> GeneratedPost:
    """
    Sinh lại bài gốc (chỉ bước 1) cho cùng (type, date), MANUAL.
    Thứ tự kiểm tra: tồn tại -> quyền sở hữu -> rate limit.
    """
    post = await _get_owned_post(db, post_id, user_id)
    post_type, period = post.type, post.date
    await ensure_can_regenerate(db, user_id, now)
    generator = GENERATORS[post_type]
    new_post = await _interactive(
        "regenerate_post",
        generator(db, user_id, period, is_manual=True, llm=llm),
    )
    logger.info("generation.regenerated", post_id=str(post_id), new_post_id=str(new_post.id), version=new_post.version)
    return new_post


async def regenerate_platform_posts(
    db: AsyncSession,
    post_id: UUID,
    user_id: UUID,
    llm: Optional[LLMService] = None,
    now: Optional[datetime] = None,
) -> CompleteGenerationResult:
    """Xóa toàn bộ platform post của bài rồi chuyển thể lại cho các nền tảng đang bật."""
    post = await _get_owned_post(db, post_id, user_id)
    platforms = await get_enabled_platforms(db, user_id)
    if not platforms:
        raise ValidationError("No platforms enabled. Enable at least one platform in settings.")
    await ensure_can_regenerate(db, user_id, now)
    tone = await _load_directive(db, user_id)
    try:
        await db.execute(delete(PlatformPost).where(PlatformPost.post_id == post_id))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning("platform.delete_failed", post_id=str(post_id), error=str(e))
        raise GenerationFailedError() from e
    await db.refresh(post)
    created, generated, failed, errors = await _adapt_platforms(db, user_id, post, platforms, tone, llm)
    return CompleteGenerationResult(
        base_post=post,
        platform_posts=created,
        generated=generated,
        failed=failed,
        errors=errors,
    )


async def update_platform_post(db: AsyncSession, platform_post_id: UUID, user_id: UUID, content: str) -> PlatformPost:
    """User sửa tay nội dung platform post; kiểm tra quyền qua bài gốc và max length của nền tảng."""
    r = await db.execute(
        select(PlatformPost, GeneratedPost.user_id)
        .join(GeneratedPost, GeneratedPost.id == PlatformPost.post_id)
        .where(PlatformPost.id == platform_post_id)
    )
    row = r.first()
    if row is None:
        raise NotFoundError("Platform post not found", details={"platform_post_id": str(platform_post_id)})
    pp, owner_id = row
    if owner_id != user_id:
        raise AuthorizationError("You do not have access to this platform post")
    spec = get_platform_spec(pp.platform)
    text = (content or "").strip()
    if not text:
        raise ValidationError("Content cannot be empty")
    if len(text) > spec.max_length:
        raise ValidationError(
            f"Content exceeds {spec.name} limit of {spec.max_length} characters",
            details={"max_length": spec.max_length, "length": len(text)},
        )
    pp.content = text
    pp.hashtags = extract_hashtags(text, spec.hashtag_limit) if spec.hashtag_limit > 0 else []
    await db.flush()
    await db.commit()
    return pp


async def get_post_with_versions(
    db: AsyncSession, user_id: UUID, post_type: str, target_date: date
) -> Tuple[GeneratedPost, List[GeneratedPost]]:
    """(bản latest, tất cả version theo version giảm dần). NotFound khi chưa có bài."""
    period = period_start(post_type, target_date)
    r = await db.execute(
        select(GeneratedPost)
        .options(selectinload(GeneratedPost.platform_posts))
        .where(
            GeneratedPost.user_id == user_id,
            GeneratedPost.type == post_type,
            GeneratedPost.date == period,
        )
        .order_by(GeneratedPost.version.desc())
    )
    versions = list(r.scalars().all())
    if not versions:
        raise NotFoundError(f"No {post_type.lower()} post found", details={"type": post_type, "date": period.isoformat()})
    latest = next((v for v in versions if v.is_latest), versions[0])
    return latest, versions


async def list_latest_posts(
    db: AsyncSession,
    user_id: UUID,
    post_type: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
    include_platforms: bool = False,
) -> List[GeneratedPost]:
    """Bài is_latest của user, mới nhất trước."""
    q = select(GeneratedPost).where(GeneratedPost.user_id == user_id, GeneratedPost.is_latest.is_(True))
    if post_type:
        q = q.where(GeneratedPost.type == post_type)
    if include_platforms:
        q = q.options(selectinload(GeneratedPost.platform_posts))
    q = q.order_by(GeneratedPost.date.desc(), GeneratedPost.created_at.desc()).limit(limit).offset(offset)
    r = await db.execute(q)
    return list(r.scalars().all())
