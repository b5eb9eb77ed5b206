from __future__ import annotations

import os
import uuid

# Settings are read at import time; give the app a harmless default DB and
# no log file before anything under `app` is imported.
_EXTERNAL_DB_URL = os.getenv("DATABASE_URL_ASYNC", "")
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite:///./.pytest-bootstrap.db")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPER_ADMIN_EMAIL", "root@example.com")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.db.session import get_db

# Ensure Base + models are registered before create_all
from app.db.base import Base  # noqa: F401
import app.models  # noqa: F401


def _is_postgres(url: str) -> bool:
    return url.startswith("postgresql")


# ---------------------------------------------------------
# Engine + schema lifecycle
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def engine(tmp_path):
    """
    Postgres (DATABASE_URL_ASYNC) gets an isolated schema per test; otherwise
    each test runs against its own SQLite file.
    """
    if _is_postgres(_EXTERNAL_DB_URL):
        schema = f"test_{uuid.uuid4().hex}"
        engine = create_async_engine(
            _EXTERNAL_DB_URL,
            future=True,
            echo=False,
            poolclass=NullPool,
            connect_args={"server_settings": {"search_path": schema}},
        )
        async with engine.begin() as conn:
            await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{schema}"'))
            await conn.execute(text(f'SET search_path TO "{schema}"'))
            await conn.run_sync(Base.metadata.create_all)

        yield engine

        async with engine.begin() as conn:
            await conn.execute(text(f'DROP SCHEMA IF EXISTS "{schema}" CASCADE'))
        await engine.dispose()
        return

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        future=True,
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture()
def sessionmaker(engine):
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture()
async def writer_sessionmaker(engine):
    """
    Sessions for tests that run several writers at once.

    Postgres relies on row locks, as in production. On SQLite every
    transaction opens with BEGIN IMMEDIATE, so concurrent sessions queue on
    the database write lock instead of failing a shared-to-reserved upgrade.
    """
    if _is_postgres(_EXTERNAL_DB_URL):
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
        return

    serial = create_async_engine(
        engine.url,
        echo=False,
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    @event.listens_for(serial.sync_engine, "connect")
    def _no_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(serial.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    yield async_sessionmaker(serial, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await serial.dispose()


# ---------------------------------------------------------
# DB session for core calls / setup / assertions
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def db(sessionmaker):
    async with sessionmaker() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------
# FastAPI app + dependency override
# ---------------------------------------------------------
@pytest.fixture()
def app(sessionmaker):
    from app.main import app as fastapi_app

    async def _override_get_db():
        async with sessionmaker() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------
# HTTP client
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as ac:
        yield ac
