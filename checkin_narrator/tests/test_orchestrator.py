"""
Orchestrator: bài gốc + chuyển thể nền tảng.
Lỗi một nền tảng không làm mất bài gốc; đường interactive bọc lỗi provider.
"""
import uuid
from datetime import date

import pytest
from sqlalchemy import select

from narrator.errors import (
    AuthorizationError,
    GenerationFailedError,
    NotFoundError,
    ProviderClientError,
    ProviderError,
    ValidationError,
)
from narrator.models import GeneratedPost, PlatformPost, User
from narrator.services.orchestrator_service import (
    generate_complete_daily,
    get_post_with_versions,
    list_latest_posts,
    manual_generate,
    regenerate_platform_posts,
    regenerate_post,
    update_platform_post,
)

from conftest import FakeLLM, add_check_in, add_post, at, rejecting_llm, set_platforms

DAY = date(2025, 3, 4)
NOW = at(2025, 3, 4, 15)


async def _platform_posts(db, post_id):
    r = await db.execute(select(PlatformPost).where(PlatformPost.post_id == post_id).order_by(PlatformPost.platform))
    return list(r.scalars().all())


async def _other_user(db) -> User:
    other = User(id=uuid.uuid4(), email="other@example.com", name="Other")
    db.add(other)
    await db.commit()
    return other


@pytest.mark.asyncio
async def test_complete_daily_adapts_for_enabled_platforms(db, user, fake_llm) -> None:
    await add_check_in(db, user.id, "note", at(2025, 3, 4, 9))
    await set_platforms(db, user.id, "X", "LINKEDIN")

    result = await generate_complete_daily(db, user.id, DAY, llm=fake_llm)

    assert result.base_post.version == 1
    assert sorted(result.generated) == ["LINKEDIN", "X"]
    assert result.failed == []
    by_platform = {pp.platform: pp for pp in result.platform_posts}
    assert by_platform["X"].hashtags == ["#debugging", "#buildinpublic"]
    assert "#python" not in by_platform["X"].content
    assert len(by_platform["X"].content) <= 280
    assert "🤝" not in by_platform["LINKEDIN"].content
    assert {c["platform"] for c in fake_llm.calls_for("platform-adapter")} == {"X", "LINKEDIN"}


@pytest.mark.asyncio
async def test_platform_failure_keeps_base_post_and_other_platforms(db, user) -> None:
    await add_check_in(db, user.id, "note", at(2025, 3, 4, 9))
    await set_platforms(db, user.id, "X", "LINKEDIN", "REDDIT")
    llm = FakeLLM(fail_platforms={"LINKEDIN"})

    result = await generate_complete_daily(db, user.id, DAY, llm=llm)

    assert result.failed == ["LINKEDIN"]
    assert "provider unavailable" in result.errors["LINKEDIN"]
    assert sorted(result.generated) == ["REDDIT", "X"]
    saved = await _platform_posts(db, result.base_post.id)
    assert [pp.platform for pp in saved] == ["REDDIT", "X"]
    assert (await db.get(GeneratedPost, result.base_post.id)).is_latest is True


@pytest.mark.asyncio
async def test_reddit_posts_have_no_hashtags(db, user, fake_llm) -> None:
    await add_check_in(db, user.id, "note", at(2025, 3, 4, 9))
    await set_platforms(db, user.id, "REDDIT")

    result = await generate_complete_daily(db, user.id, DAY, llm=fake_llm)

    reddit = result.platform_posts[0]
    assert reddit.hashtags == []
    assert "#dev" not in reddit.content


@pytest.mark.asyncio
async def test_no_platforms_enabled_means_no_adaptation(db, user, fake_llm) -> None:
    await add_check_in(db, user.id, "note", at(2025, 3, 4, 9))

    result = await generate_complete_daily(db, user.id, DAY, llm=fake_llm)

    assert result.platform_posts == []
    assert result.generated == [] and result.failed == []
    assert fake_llm.calls_for("platform-adapter") == []


@pytest.mark.asyncio
async def test_manual_generate_wraps_provider_errors(db, user) -> None:
    await add_check_in(db, user.id, "note", at(2025, 3, 4, 9))
    llm = FakeLLM(responses={"daily-generator": ProviderError("LLM call failed after 3 attempts: boom")})

    with pytest.raises(GenerationFailedError) as exc_info:
        await manual_generate(db, user.id, "DAILY", DAY, llm=llm, now=NOW)
    assert "boom" not in exc_info.value.message


@pytest.mark.asyncio
async def test_manual_generate_wraps_raw_sdk_client_errors(db, user) -> None:
    await add_check_in(db, user.id, "note", at(2025, 3, 4, 9))
    llm = rejecting_llm()

    with pytest.raises(GenerationFailedError) as exc_info:
        await manual_generate(db, user.id, "DAILY", DAY, llm=llm, now=NOW)
    assert isinstance(exc_info.value.__cause__, ProviderClientError)
    assert exc_info.value.__cause__.code == "PROVIDER_CLIENT_ERROR"
    assert "model" not in exc_info.value.message
    # 400 không retry
    assert llm._client.chat.completions.calls == 1


@pytest.mark.asyncio
async def test_manual_generate_keeps_not_found(db, user, fake_llm) -> None:
    with pytest.raises(NotFoundError):
        await manual_generate(db, user.id, "DAILY", DAY, llm=fake_llm, now=NOW)


@pytest.mark.asyncio
async def test_manual_weekly_normalizes_to_week_start(db, user, fake_llm) -> None:
    await add_post(db, user.id, "DAILY", date(2025, 3, 3), content="monday")

    result = await manual_generate(db, user.id, "WEEKLY", date(2025, 3, 6), llm=fake_llm, now=NOW)

    assert result.base_post.date == date(2025, 3, 3)
    assert result.base_post.generation_type == "MANUAL"


@pytest.mark.asyncio
async def test_regenerate_post_creates_manual_version_without_platforms(db, user, fake_llm) -> None:
    await add_check_in(db, user.id, "note", at(2025, 3, 4, 9))
    await set_platforms(db, user.id, "X")
    first = (await generate_complete_daily(db, user.id, DAY, llm=fake_llm)).base_post
    fake_llm.calls.clear()

    new_post = await regenerate_post(db, first.id, user.id, llm=fake_llm, now=NOW)

    assert new_post.version == 2
    assert new_post.generation_type == "MANUAL"
    assert fake_llm.calls_for("platform-adapter") == []
    await db.refresh(first)
    assert first.is_latest is False


@pytest.mark.asyncio
async def test_regenerate_post_not_found_and_not_owned(db, user, fake_llm) -> None:
    with pytest.raises(NotFoundError):
        await regenerate_post(db, uuid.uuid4(), user.id, llm=fake_llm, now=NOW)

    other = await _other_user(db)
    post = await add_post(db, other.id, "DAILY", DAY)
    with pytest.raises(AuthorizationError):
        await regenerate_post(db, post.id, user.id, llm=fake_llm, now=NOW)
    assert fake_llm.calls == []


@pytest.mark.asyncio
async def test_regenerate_platform_posts_replaces_existing(db, user, fake_llm) -> None:
    await add_check_in(db, user.id, "note", at(2025, 3, 4, 9))
    await set_platforms(db, user.id, "X", "REDDIT")
    result = await generate_complete_daily(db, user.id, DAY, llm=fake_llm)
    old_ids = {pp.id for pp in result.platform_posts}

    regenerated = await regenerate_platform_posts(db, result.base_post.id, user.id, llm=fake_llm, now=NOW)

    saved = await _platform_posts(db, result.base_post.id)
    assert len(saved) == 2
    assert old_ids.isdisjoint({pp.id for pp in saved})
    assert sorted(regenerated.generated) == ["REDDIT", "X"]


@pytest.mark.asyncio
async def test_regenerate_platform_posts_requires_enabled_platform(db, user, fake_llm) -> None:
    post = await add_post(db, user.id, "DAILY", DAY)
    with pytest.raises(ValidationError):
        await regenerate_platform_posts(db, post.id, user.id, llm=fake_llm, now=NOW)


@pytest.mark.asyncio
async def test_update_platform_post_enforces_length_and_hashtags(db, user) -> None:
    post = await add_post(db, user.id, "DAILY", DAY)
    pp = PlatformPost(post_id=post.id, platform="X", content="draft", hashtags=[])
    db.add(pp)
    await db.commit()

    with pytest.raises(ValidationError):
        await update_platform_post(db, pp.id, user.id, "x" * 281)

    updated = await update_platform_post(db, pp.id, user.id, "  Shipped it #launch #python #extra  ")
    assert updated.content == "Shipped it #launch #python #extra"
    assert updated.hashtags == ["#launch", "#python"]

    other = await _other_user(db)
    with pytest.raises(AuthorizationError):
        await update_platform_post(db, pp.id, other.id, "hijack")
    with pytest.raises(NotFoundError):
        await update_platform_post(db, uuid.uuid4(), user.id, "missing")


@pytest.mark.asyncio
async def test_versions_and_latest_listing(db, user) -> None:
    await add_post(db, user.id, "DAILY", DAY, content="v1", version=1, is_latest=False)
    await add_post(db, user.id, "DAILY", DAY, content="v2", version=2)
    await add_post(db, user.id, "WEEKLY", date(2025, 3, 3), content="week")

    latest, versions = await get_post_with_versions(db, user.id, "DAILY", DAY)
    assert latest.content == "v2"
    assert [v.version for v in versions] == [2, 1]

    weekly = await list_latest_posts(db, user.id, post_type="WEEKLY")
    assert [p.content for p in weekly] == ["week"]
    everything = await list_latest_posts(db, user.id)
    assert {p.content for p in everything} == {"v2", "week"}

    with pytest.raises(NotFoundError):
        await get_post_with_versions(db, user.id, "MONTHLY", DAY)
