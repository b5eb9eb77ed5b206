from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings


def build_engine(url: str) -> AsyncEngine:
    """
    Postgres (asyncpg) in deployments; sqlite+aiosqlite is accepted for local
    runs and the test suite, which has no use for the pool tuning.
    """
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)

    return create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,  # detects dead connections before using them
        pool_recycle=300,    # seconds
    )


# CLEAN URL: asyncpg rejects sslmode/channel_binding query params
engine: AsyncEngine = build_engine(settings.DATABASE_URL_ASYNC_CLEAN)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    One AsyncSession per request.

    Ledger and placement operations commit or roll back themselves; anything a
    failed request leaves open (e.g. a status change before a refused stock
    claim) is rolled back here.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
