"""
Base narrative generator: DAILY (từ check-in), WEEKLY (từ DAILY), MONTHLY (từ WEEKLY).

Mỗi lần sinh: gom input -> merge tone -> gọi LLM (retry/timeout) -> parse nhãn
-> ghi version mới trong một transaction (flip is_latest, version = count + 1).
Không có input -> NotFoundError, không gọi LLM, không ghi gì.
"""
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from narrator.clock import utcnow
from narrator.config import get_settings
from narrator.errors import DatabaseError, NotFoundError, ProviderError
from narrator.logging_config import get_logger
from narrator.models import CheckIn, GeneratedPost, GenerationSchedule
from narrator.models.generated_post import (
    GENERATION_AUTO,
    GENERATION_MANUAL,
    POST_TYPE_DAILY,
    POST_TYPE_MONTHLY,
    POST_TYPE_WEEKLY,
)
from narrator.services import prompts
from narrator.services.labeled_parser import parse_daily, parse_monthly, parse_weekly
from narrator.services.llm_service import LLMResponse, LLMService
from narrator.services.token_usage_service import record_token_usage
from narrator.services.tone_profile_service import build_tone_directive, get_tone_profile
from narrator.utils.time_windows import local_day_bounds_utc, month_end, month_start, resolve_timezone, week_start

logger = get_logger(__name__)

PERSIST_MAX_ATTEMPTS = 3


async def get_user_timezone_name(db: AsyncSession, user_id: UUID) -> str:
    """Timezone của user (từ generation_schedules), fallback DEFAULT_TIMEZONE."""
    r = await db.execute(select(GenerationSchedule.timezone).where(GenerationSchedule.user_id == user_id))
    tz_name = r.scalar_one_or_none()
    return tz_name or get_settings().default_timezone


async def get_latest_post(db: AsyncSession, user_id: UUID, post_type: str, period: date) -> Optional[GeneratedPost]:
    r = await db.execute(
        select(GeneratedPost).where(
            GeneratedPost.user_id == user_id,
            GeneratedPost.type == post_type,
            GeneratedPost.date == period,
            GeneratedPost.is_latest.is_(True),
        )
    )
    return r.scalar_one_or_none()


async def list_latest_posts_between(
    db: AsyncSession, user_id: UUID, post_type: str, start: date, end: date
) -> List[GeneratedPost]:
    """Các bài is_latest của user trong [start, end], theo date tăng dần."""
    r = await db.execute(
        select(GeneratedPost)
        .where(
            GeneratedPost.user_id == user_id,
            GeneratedPost.type == post_type,
            GeneratedPost.date >= start,
            GeneratedPost.date <= end,
            GeneratedPost.is_latest.is_(True),
        )
        .order_by(GeneratedPost.date.asc())
    )
    return list(r.scalars().all())


async def persist_new_version(
    db: AsyncSession,
    *,
    user_id: UUID,
    post_type: str,
    period: date,
    content: str,
    metadata: Dict[str, Any],
    is_manual: bool,
    model_used: Optional[str],
    tone_profile_id: Optional[UUID],
) -> GeneratedPost:
    """
    Một transaction: khóa các version hiện có, flip is_latest=false, đếm, insert version count+1.
    Writer đồng thời thua ở unique index -> rollback và làm lại (tối đa PERSIST_MAX_ATTEMPTS).
    """
    tuple_filter = (
        GeneratedPost.user_id == user_id,
        GeneratedPost.type == post_type,
        GeneratedPost.date == period,
    )
    last_error: Optional[Exception] = None
    for attempt in range(1, PERSIST_MAX_ATTEMPTS + 1):
        try:
            await db.execute(select(GeneratedPost.id).where(*tuple_filter).with_for_update())
            await db.execute(
                update(GeneratedPost)
                .where(*tuple_filter, GeneratedPost.is_latest.is_(True))
                .values(is_latest=False)
                .execution_options(synchronize_session=False)
            )
            r = await db.execute(select(func.count(GeneratedPost.id)).where(*tuple_filter))
            version = (r.scalar() or 0) + 1
            post = GeneratedPost(
                user_id=user_id,
                type=post_type,
                date=period,
                content=content,
                metadata_=metadata,
                version=version,
                is_latest=True,
                generation_type=GENERATION_MANUAL if is_manual else GENERATION_AUTO,
                model_used=model_used,
                tone_profile_id=tone_profile_id,
            )
            db.add(post)
            await db.flush()
            await db.commit()
            logger.info(
                "generation.persisted",
                user_id=str(user_id),
                type=post_type,
                date=period.isoformat(),
                version=version,
                generation_type=post.generation_type,
            )
            return post
        except IntegrityError as e:
            await db.rollback()
            last_error = e
            logger.warning(
                "generation.persist_conflict",
                user_id=str(user_id),
                type=post_type,
                date=period.isoformat(),
                attempt=attempt,
            )
        except SQLAlchemyError as e:
            await db.rollback()
            raise DatabaseError(f"Failed to save generated post: {e}") from e
    raise DatabaseError(f"Failed to save generated post after {PERSIST_MAX_ATTEMPTS} attempts: {last_error}")


async def _load_tone(db: AsyncSession, user_id: UUID):  # noqa: ANN202
    profile = await get_tone_profile(db, user_id)
    return (profile.id if profile else None), build_tone_directive(profile)


def _record_usage(user_id: UUID, response: LLMResponse, agent: str, post: GeneratedPost) -> None:
    record_token_usage(user_id, response, agent, generated_post_id=post.id)


async def generate_daily_post(
    db: AsyncSession,
    user_id: UUID,
    target_date: date,
    is_manual: bool = False,
    llm: Optional[LLMService] = None,
) -> GeneratedPost:
    """DAILY cho ngày local target_date, từ check-in trong ngày đó (timezone của user)."""
    tz = resolve_timezone(await get_user_timezone_name(db, user_id), get_settings().default_timezone)
    start_utc, end_utc = local_day_bounds_utc(target_date, tz)
    r = await db.execute(
        select(CheckIn)
        .where(
            CheckIn.user_id == user_id,
            CheckIn.created_at >= start_utc,
            CheckIn.created_at < end_utc,
        )
        .order_by(CheckIn.created_at.asc())
    )
    check_ins = list(r.scalars().all())
    if not check_ins:
        raise NotFoundError("No check-ins found for this date", details={"date": target_date.isoformat()})

    tone_profile_id, tone = await _load_tone(db, user_id)
    lines: List[Tuple[str, str]] = [(c.created_at.astimezone(tz).strftime("%H:%M"), c.content) for c in check_ins]
    system, prompt = prompts.daily_prompt(target_date, lines, tone)
    llm = llm or LLMService(get_settings())
    response = await llm.complete(system, prompt, agent="daily-generator")
    parsed = parse_daily(response.text)
    if not parsed.narrative:
        raise ProviderError("LLM response did not contain a narrative")

    metadata = {
        "themes": parsed.themes,
        "highlights": parsed.highlights,
        "insights": parsed.insights,
        "check_in_count": len(check_ins),
        "generated_at": utcnow().isoformat(),
    }
    post = await persist_new_version(
        db,
        user_id=user_id,
        post_type=POST_TYPE_DAILY,
        period=target_date,
        content=parsed.narrative,
        metadata=metadata,
        is_manual=is_manual,
        model_used=response.model_string,
        tone_profile_id=tone_profile_id,
    )
    _record_usage(user_id, response, "daily-generator", post)
    return post


async def generate_weekly_post(
    db: AsyncSession,
    user_id: UUID,
    target_date: date,
    is_manual: bool = False,
    llm: Optional[LLMService] = None,
) -> GeneratedPost:
    """WEEKLY cho tuần chứa target_date (thứ Hai..Chủ nhật), từ các DAILY is_latest."""
    start = week_start(target_date)
    end = start + timedelta(days=6)
    daily_posts = await list_latest_posts_between(db, user_id, POST_TYPE_DAILY, start, end)
    if not daily_posts:
        raise NotFoundError("No daily posts found for this week", details={"week_start": start.isoformat()})

    tone_profile_id, tone = await _load_tone(db, user_id)
    system, prompt = prompts.weekly_prompt(start, end, [(p.date, p.content) for p in daily_posts], tone)
    llm = llm or LLMService(get_settings())
    response = await llm.complete(system, prompt, agent="weekly-generator")
    parsed = parse_weekly(response.text)
    if not parsed.narrative:
        raise ProviderError("LLM response did not contain a narrative")

    metadata = {
        "themes": parsed.themes,
        "highlights": parsed.highlights,
        "patterns": parsed.patterns,
        "evolution": parsed.evolution,
        "days_covered": len(daily_posts),
        "week_start": start.isoformat(),
        "week_end": end.isoformat(),
    }
    post = await persist_new_version(
        db,
        user_id=user_id,
        post_type=POST_TYPE_WEEKLY,
        period=start,
        content=parsed.narrative,
        metadata=metadata,
        is_manual=is_manual,
        model_used=response.model_string,
        tone_profile_id=tone_profile_id,
    )
    _record_usage(user_id, response, "weekly-generator", post)
    return post


async def generate_monthly_post(
    db: AsyncSession,
    user_id: UUID,
    target_date: date,
    is_manual: bool = False,
    llm: Optional[LLMService] = None,
) -> GeneratedPost:
    """MONTHLY cho tháng chứa target_date, từ các WEEKLY is_latest có date trong tháng."""
    start = month_start(target_date)
    end = month_end(target_date)
    weekly_posts = await list_latest_posts_between(db, user_id, POST_TYPE_WEEKLY, start, end)
    if not weekly_posts:
        raise NotFoundError("No weekly posts found for this month", details={"month_start": start.isoformat()})

    tone_profile_id, tone = await _load_tone(db, user_id)
    system, prompt = prompts.monthly_prompt(start, end, [(p.date, p.content) for p in weekly_posts], tone)
    llm = llm or LLMService(get_settings())
    response = await llm.complete(system, prompt, agent="monthly-generator")
    parsed = parse_monthly(response.text)
    if not parsed.narrative:
        raise ProviderError("LLM response did not contain a narrative")

    metadata = {
        "themes": parsed.themes,
        "achievements": parsed.achievements,
        "shifts": parsed.shifts,
        "momentum": parsed.momentum,
        "next_focus": parsed.next_focus,
        "weeks_covered": len(weekly_posts),
        "month_start": start.isoformat(),
        "month_end": end.isoformat(),
    }
    post = await persist_new_version(
        db,
        user_id=user_id,
        post_type=POST_TYPE_MONTHLY,
        period=start,
        content=parsed.narrative,
        metadata=metadata,
        is_manual=is_manual,
        model_used=response.model_string,
        tone_profile_id=tone_profile_id,
    )
    _record_usage(user_id, response, "monthly-generator", post)
    return post


GENERATORS = {
    POST_TYPE_DAILY: generate_daily_post,
    POST_TYPE_WEEKLY: generate_weekly_post,
    POST_TYPE_MONTHLY: generate_monthly_post,
}
