"""
Async engine + session factory (SQLAlchemy 2.0).
PostgreSQL qua asyncpg ở production; SQLite qua aiosqlite khi chạy test.
"""
from collections.abc import AsyncGenerator
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from narrator.config import get_settings

# SQLite: writer đồng thời chờ lock thay vì lỗi "database is locked" ngay.
SQLITE_BUSY_TIMEOUT_SECONDS = 30


def _engine_options(database_url: str) -> Dict[str, Any]:
    if database_url.startswith("sqlite"):
        return {"connect_args": {"timeout": SQLITE_BUSY_TIMEOUT_SECONDS}}
    # Worker và scheduler giữ connection lâu giữa các tick.
    return {"pool_pre_ping": True, "pool_recycle": 1800}


settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.app_env == "local",
    **_engine_options(settings.database_url),
)

# expire_on_commit=False: object trả về từ service vẫn đọc được sau commit (async không lazy load).
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base cho mọi model của narrator."""


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Session cho một request; service tự commit, ở đây chỉ commit phần còn lại hoặc rollback khi lỗi."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
