"""Token usage logging: ghi token + cost ước tính, bất đồng bộ qua telemetry dispatcher."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from narrator.infrastructure.background import get_dispatcher
from narrator.logging_config import get_logger
from narrator.models import TokenUsageLog
from narrator.services.llm_service import LLMResponse
from narrator.services.usage_normalizers import estimate_cost_usd

logger = get_logger(__name__)


async def log_token_usage(
    db: AsyncSession,
    user_id: UUID,
    response: LLMResponse,
    agent_type: str,
    generated_post_id: Optional[UUID] = None,
    platform_post_id: Optional[UUID] = None,
    platform: Optional[str] = None,
) -> TokenUsageLog:
    """Ghi một dòng token_usage_logs. Caller đảm bảo commit."""
    cost = estimate_cost_usd(response.usage, response.model_string)
    log = TokenUsageLog(
        user_id=user_id,
        generated_post_id=generated_post_id,
        platform_post_id=platform_post_id,
        agent_type=agent_type,
        platform=platform,
        provider=response.provider,
        model_used=response.model_string,
        prompt_tokens=response.usage.prompt_tokens,
        completion_tokens=response.usage.completion_tokens,
        total_tokens=response.usage.total_tokens,
        estimated_cost_usd=cost,
    )
    db.add(log)
    await db.flush()
    logger.info(
        "token_usage.logged",
        user_id=str(user_id),
        agent_type=agent_type,
        model=response.model_string,
        total_tokens=response.usage.total_tokens,
        cost_usd=str(cost),
    )
    return log


def record_token_usage(
    user_id: UUID,
    response: LLMResponse,
    agent_type: str,
    generated_post_id: Optional[UUID] = None,
    platform_post_id: Optional[UUID] = None,
    platform: Optional[str] = None,
) -> bool:
    """
    Fire-and-forget: đưa việc ghi usage vào dispatcher, dùng session riêng.
    Không bao giờ làm hỏng lời gọi sinh bài.
    """

    async def _write() -> None:
        from narrator.db import async_session_factory

        async with async_session_factory() as db:
            await log_token_usage(
                db,
                user_id=user_id,
                response=response,
                agent_type=agent_type,
                generated_post_id=generated_post_id,
                platform_post_id=platform_post_id,
                platform=platform,
            )
            await db.commit()

    return get_dispatcher().submit(f"token_usage:{agent_type}", _write)


async def get_total_tokens_since(db: AsyncSession, user_id: UUID, since: datetime) -> int:
    """Tổng total_tokens của user từ mốc since (UTC)."""
    q = (
        select(func.coalesce(func.sum(TokenUsageLog.total_tokens), 0))
        .where(TokenUsageLog.user_id == user_id)
        .where(TokenUsageLog.created_at >= since)
    )
    r = await db.execute(q)
    return int(r.scalar() or 0)
