"""
Shared pytest fixtures.

SQLite file (aiosqlite) thay cho PostgreSQL: schema tạo / xóa theo từng test.
Env phải được set trước khi import narrator.* (settings và engine tạo lúc import).
"""
import os
import uuid
from datetime import date, datetime, timezone
from types import SimpleNamespace
from typing import Callable, Dict, List, Optional, Set, Union

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_narrator.db"
os.environ["APP_ENV"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["REDIS_URL"] = ""
os.environ["DEFAULT_TIMEZONE"] = "UTC"
os.environ["OPENAI_API_KEY"] = "sk-test"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from narrator.db import Base, async_session_factory, engine
from narrator.errors import ProviderError
from narrator.infrastructure.background import get_dispatcher
from narrator.models import CheckIn, GeneratedPost, GenerationSchedule, PlatformSettings, User
from narrator.config import get_settings
from narrator.services.llm_service import LLMResponse, LLMService
from narrator.services.usage_normalizers import TokenUsage

DAILY_TEXT = (
    "Started the morning fixing the flaky importer, then paired with Sam on the schema.\n\n"
    "The afternoon run cleared my head.\n\n"
    "THEMES: debugging, collaboration\n"
    "HIGHLIGHTS: fixed importer, 5k run\n"
    "INSIGHTS: rest unblocks thinking"
)
WEEKLY_TEXT = (
    "This week was about finishing what I started.\n\n"
    "**THEMES:** focus, shipping\n"
    "**HIGHLIGHTS:** importer fixed, demo went well\n"
    "**PATTERNS:** mornings are productive, afternoons drift\n"
    "**EVOLUTION:** moved from firefighting to planning"
)
MONTHLY_TEXT = (
    "A month of steady progress.\n\n"
    "THEMES: consistency, craft\n"
    "ACHIEVEMENTS: launched beta, ran 60km\n"
    "SHIFTS: less meetings, more writing\n"
    "MOMENTUM: building steadily\n"
    "NEXT_FOCUS: onboarding, performance"
)
PLATFORM_TEXTS = {
    "X": "Fixed the importer and paired on the schema today 🚀\n\n#debugging #buildinpublic #python",
    "LINKEDIN": "Today reminded me why pairing matters 🤝\n\nWe fixed a flaky importer together.\n\n#engineering #teamwork",
    "REDDIT": "Small win today: fixed a flaky importer.\n\nAnyone else find pairing helps with this? #dev",
}
PLATFORM_NAMES = {"X": "X (Twitter)", "LINKEDIN": "LinkedIn", "REDDIT": "Reddit"}

Response = Union[str, Exception, Callable[[str, str], str]]


class FakeLLM:
    """
    LLMService giả: ghi lại mọi lời gọi, trả text theo agent (hoặc theo platform cho adapter).
    fail_platforms: nền tảng nào thì ném ProviderError.
    """

    provider = "openai"
    model = "gpt-4o-mini"

    def __init__(
        self,
        responses: Optional[Dict[str, Response]] = None,
        fail_platforms: Optional[Set[str]] = None,
        usage: Optional[TokenUsage] = None,
    ) -> None:
        self.responses: Dict[str, Response] = {
            "daily-generator": DAILY_TEXT,
            "weekly-generator": WEEKLY_TEXT,
            "monthly-generator": MONTHLY_TEXT,
        }
        self.responses.update(responses or {})
        self.fail_platforms = set(fail_platforms or ())
        self.usage = usage or TokenUsage(prompt_tokens=120, completion_tokens=80, total_tokens=200)
        self.calls: List[dict] = []

    @property
    def model_string(self) -> str:
        return f"{self.provider}/{self.model}"

    def calls_for(self, agent: str) -> List[dict]:
        return [c for c in self.calls if c["agent"] == agent]

    def _platform_of(self, system: str) -> Optional[str]:
        for key, name in PLATFORM_NAMES.items():
            if f"for {name}" in system:
                return key
        return None

    async def complete(self, system: str, prompt: str, *, agent: str = "llm") -> LLMResponse:
        platform = self._platform_of(system) if agent == "platform-adapter" else None
        self.calls.append({"agent": agent, "system": system, "prompt": prompt, "platform": platform})
        if platform is not None:
            if platform in self.fail_platforms:
                raise ProviderError(f"provider unavailable for {platform}")
            value: Response = self.responses.get(f"platform:{platform}", PLATFORM_TEXTS[platform])
        else:
            value = self.responses[agent]
        if isinstance(value, Exception):
            raise value
        text = value(system, prompt) if callable(value) else value
        return LLMResponse(text=text, usage=self.usage, provider=self.provider, model=self.model)


class BadRequest(Exception):
    """Giống openai.BadRequestError: exception thô của SDK mang status_code."""

    status_code = 400


class _RejectingCompletions:
    def __init__(self) -> None:
        self.calls = 0

    async def create(self, **kwargs):  # noqa: ANN003, ANN201
        self.calls += 1
        raise BadRequest("Invalid value for 'model'")


def rejecting_llm() -> LLMService:
    """LLMService thật, client SDK luôn trả 400."""
    service = LLMService(get_settings())
    service._client = SimpleNamespace(chat=SimpleNamespace(completions=_RejectingCompletions()))
    return service


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Tạo schema trước mỗi test, xóa sau; chờ telemetry ghi xong trước khi drop."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await get_dispatcher().stop()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db():
    async with async_session_factory() as session:
        yield session


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest_asyncio.fixture
async def user(db) -> User:
    u = User(id=uuid.uuid4(), email=f"{uuid.uuid4().hex[:8]}@example.com", name="Test User")
    db.add(u)
    await db.commit()
    return u


@pytest_asyncio.fixture
async def client(fake_llm):
    from narrator.main import app
    from narrator.routers.deps import get_llm_service

    app.dependency_overrides[get_llm_service] = lambda: fake_llm
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def at(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> datetime:
    """datetime UTC cho test."""
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


async def add_check_in(db, user_id, content: str, created_at: datetime) -> CheckIn:
    row = CheckIn(user_id=user_id, content=content, created_at=created_at)
    db.add(row)
    await db.commit()
    return row


async def add_post(
    db,
    user_id,
    post_type: str,
    period: date,
    content: str = "narrative",
    version: int = 1,
    is_latest: bool = True,
    generation_type: str = "AUTO",
    created_at: Optional[datetime] = None,
) -> GeneratedPost:
    post = GeneratedPost(
        user_id=user_id,
        type=post_type,
        date=period,
        content=content,
        metadata_={"themes": ["seed"]},
        version=version,
        is_latest=is_latest,
        generation_type=generation_type,
    )
    if created_at is not None:
        post.created_at = created_at
    db.add(post)
    await db.commit()
    return post


async def set_platforms(db, user_id, *platforms: str) -> PlatformSettings:
    row = PlatformSettings(
        user_id=user_id,
        x_enabled="X" in platforms,
        linkedin_enabled="LINKEDIN" in platforms,
        reddit_enabled="REDDIT" in platforms,
    )
    db.add(row)
    await db.commit()
    return row


async def add_schedule(db, user_id, **kwargs) -> GenerationSchedule:
    kwargs.setdefault("timezone", "UTC")
    row = GenerationSchedule(user_id=user_id, **kwargs)
    db.add(row)
    await db.commit()
    return row
