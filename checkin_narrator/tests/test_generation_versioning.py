"""
Base narrative generator + versioning:
- version liên tục từ 1, đúng một bản is_latest cho mỗi (user, type, date)
- không có input -> NotFound, không gọi LLM, không ghi gì
- ghi đồng thời vẫn ra version liên tục
"""
import asyncio
from datetime import date, timedelta

import pytest
from sqlalchemy import select

from narrator.db import async_session_factory
from narrator.errors import NotFoundError, ProviderError
from narrator.infrastructure.background import get_dispatcher
from narrator.models import GeneratedPost, TokenUsageLog
from narrator.services.narrative_service import (
    generate_daily_post,
    generate_monthly_post,
    generate_weekly_post,
    persist_new_version,
)

from conftest import FakeLLM, add_check_in, add_post, add_schedule, at

DAY = date(2025, 3, 4)


async def _versions(db, user_id, post_type, period):
    r = await db.execute(
        select(GeneratedPost)
        .where(GeneratedPost.user_id == user_id, GeneratedPost.type == post_type, GeneratedPost.date == period)
        .order_by(GeneratedPost.version)
    )
    return list(r.scalars().all())


@pytest.mark.asyncio
async def test_daily_post_from_check_ins(db, user, fake_llm) -> None:
    await add_check_in(db, user.id, "fixed importer", at(2025, 3, 4, 9))
    await add_check_in(db, user.id, "went running", at(2025, 3, 4, 17))
    await add_check_in(db, user.id, "yesterday's note", at(2025, 3, 3, 22))

    post = await generate_daily_post(db, user.id, DAY, llm=fake_llm)

    assert post.version == 1
    assert post.is_latest is True
    assert post.generation_type == "AUTO"
    assert post.model_used == "openai/gpt-4o-mini"
    assert post.content.startswith("Started the morning")
    assert "THEMES" not in post.content
    assert post.metadata_["themes"] == ["debugging", "collaboration"]
    assert post.metadata_["insights"] == ["rest unblocks thinking"]
    assert post.metadata_["check_in_count"] == 2
    prompt = fake_llm.calls_for("daily-generator")[0]["prompt"]
    assert "[09:00] fixed importer" in prompt
    assert "yesterday's note" not in prompt


@pytest.mark.asyncio
async def test_check_ins_grouped_by_user_timezone(db, user, fake_llm) -> None:
    await add_schedule(db, user.id, timezone="Asia/Kolkata")
    # 19:00 UTC ngày 3 = 00:30 ngày 4 ở Kolkata.
    await add_check_in(db, user.id, "late night idea", at(2025, 3, 3, 19))
    post = await generate_daily_post(db, user.id, DAY, llm=fake_llm)
    assert post.metadata_["check_in_count"] == 1
    assert "[00:30] late night idea" in fake_llm.calls[0]["prompt"]


@pytest.mark.asyncio
async def test_regeneration_creates_consecutive_versions(db, user, fake_llm) -> None:
    await add_check_in(db, user.id, "note", at(2025, 3, 4, 9))

    await generate_daily_post(db, user.id, DAY, llm=fake_llm)
    await generate_daily_post(db, user.id, DAY, is_manual=True, llm=fake_llm)
    third = await generate_daily_post(db, user.id, DAY, is_manual=True, llm=fake_llm)

    versions = await _versions(db, user.id, "DAILY", DAY)
    assert [v.version for v in versions] == [1, 2, 3]
    assert [v.is_latest for v in versions] == [False, False, True]
    assert third.generation_type == "MANUAL"


@pytest.mark.asyncio
async def test_no_check_ins_is_not_found_without_llm_call(db, user, fake_llm) -> None:
    with pytest.raises(NotFoundError):
        await generate_daily_post(db, user.id, DAY, llm=fake_llm)
    assert fake_llm.calls == []
    assert await _versions(db, user.id, "DAILY", DAY) == []


@pytest.mark.asyncio
async def test_empty_narrative_is_provider_error_and_nothing_saved(db, user) -> None:
    await add_check_in(db, user.id, "note", at(2025, 3, 4, 9))
    llm = FakeLLM(responses={"daily-generator": "THEMES: a, b"})
    with pytest.raises(ProviderError):
        await generate_daily_post(db, user.id, DAY, llm=llm)
    assert await _versions(db, user.id, "DAILY", DAY) == []


@pytest.mark.asyncio
async def test_weekly_uses_latest_daily_posts_of_the_week(db, user, fake_llm) -> None:
    monday = date(2025, 3, 3)
    await add_post(db, user.id, "DAILY", monday, content="old monday", version=1, is_latest=False)
    await add_post(db, user.id, "DAILY", monday, content="monday v2", version=2)
    await add_post(db, user.id, "DAILY", monday + timedelta(days=2), content="wednesday")
    await add_post(db, user.id, "DAILY", monday - timedelta(days=1), content="previous sunday")

    post = await generate_weekly_post(db, user.id, monday + timedelta(days=4), llm=fake_llm)

    assert post.date == monday
    assert post.metadata_["days_covered"] == 2
    assert post.metadata_["week_start"] == "2025-03-03"
    assert post.metadata_["week_end"] == "2025-03-09"
    assert post.metadata_["evolution"] == "moved from firefighting to planning"
    prompt = fake_llm.calls_for("weekly-generator")[0]["prompt"]
    assert "monday v2" in prompt
    assert "old monday" not in prompt
    assert "previous sunday" not in prompt


@pytest.mark.asyncio
async def test_weekly_without_daily_posts_is_not_found(db, user, fake_llm) -> None:
    with pytest.raises(NotFoundError):
        await generate_weekly_post(db, user.id, DAY, llm=fake_llm)
    assert fake_llm.calls == []


@pytest.mark.asyncio
async def test_monthly_from_weekly_posts(db, user, fake_llm) -> None:
    await add_post(db, user.id, "WEEKLY", date(2025, 3, 3), content="week one")
    await add_post(db, user.id, "WEEKLY", date(2025, 3, 10), content="week two")
    await add_post(db, user.id, "WEEKLY", date(2025, 2, 24), content="february week")

    post = await generate_monthly_post(db, user.id, date(2025, 3, 20), llm=fake_llm)

    assert post.date == date(2025, 3, 1)
    assert post.metadata_["weeks_covered"] == 2
    assert post.metadata_["momentum"] == "building steadily"
    assert post.metadata_["next_focus"] == ["onboarding", "performance"]
    assert post.metadata_["month_end"] == "2025-03-31"


@pytest.mark.asyncio
async def test_token_usage_logged_in_background(db, user, fake_llm) -> None:
    await add_check_in(db, user.id, "note", at(2025, 3, 4, 9))
    post = await generate_daily_post(db, user.id, DAY, llm=fake_llm)
    await get_dispatcher().drain()

    r = await db.execute(select(TokenUsageLog).where(TokenUsageLog.user_id == user.id))
    logs = list(r.scalars().all())
    assert len(logs) == 1
    assert logs[0].agent_type == "daily-generator"
    assert logs[0].generated_post_id == post.id
    assert logs[0].total_tokens == 200


@pytest.mark.asyncio
async def test_concurrent_writers_get_consecutive_versions(user) -> None:
    async def write(n: int) -> None:
        async with async_session_factory() as session:
            await persist_new_version(
                session,
                user_id=user.id,
                post_type="DAILY",
                period=DAY,
                content=f"writer {n}",
                metadata={},
                is_manual=False,
                model_used=None,
                tone_profile_id=None,
            )

    await asyncio.gather(*(write(n) for n in range(3)))

    async with async_session_factory() as session:
        versions = await _versions(session, user.id, "DAILY", DAY)
    assert sorted(v.version for v in versions) == [1, 2, 3]
    assert sum(1 for v in versions if v.is_latest) == 1
    assert max(versions, key=lambda v: v.version).is_latest is True
