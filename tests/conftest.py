"""Pytest configuration and fixtures."""
from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from rockets.db import database
from rockets.db.database import build_engine, create_schema, get_db, make_session_factory
from rockets.main import app
from rockets.worker.dispatcher import Dispatcher, DispatcherConfig


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """A file-backed SQLite database per test.

    File-backed rather than in-memory so that concurrent workers get their
    own connections, the way they would against PostgreSQL.
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'rockets.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """A session for arranging and inspecting data; tests commit explicitly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def dispatcher(session_factory: async_sessionmaker[AsyncSession]) -> Dispatcher:
    """A dispatcher wired to the test database with a fast poll interval."""
    config = DispatcherConfig(poll_interval=0.01, batch_size=10, worker_count=2)
    return Dispatcher(config, session_factory=session_factory)


@pytest_asyncio.fixture
async def client(
    engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncClient]:
    """Async test client over the ASGI app (lifespan not run: no workers)."""
    old_engine = database._engine
    old_factory = database._async_session_factory
    database._engine = engine
    database._async_session_factory = session_factory

    async def override_get_db() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
        database._engine = old_engine
        database._async_session_factory = old_factory
