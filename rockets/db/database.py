"""
Async engine and session management for the rockets store.

One process-wide engine is built by ``init_db()`` during application
startup and disposed by ``close_db()`` on shutdown.  Request handlers get a
session from ``get_db``; the dispatcher opens its own short-lived sessions
through ``AsyncSessionLocal``.

PostgreSQL (``postgresql+asyncpg://``) is the production target; SQLite
(``sqlite+aiosqlite://``) is used for development and the test suite.
"""
from __future__ import annotations

import logging
from typing import Any, AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from rockets.config import settings

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./rockets.db"


class Base(DeclarativeBase):
    """Declarative base for the rockets tables."""


_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_database_url() -> str:
    """Return the configured database URL, falling back to a local SQLite file."""
    if settings.database_url:
        return settings.database_url
    logger.warning("ROCKETS_DATABASE_URL not set, using %s", DEFAULT_DATABASE_URL)
    return DEFAULT_DATABASE_URL


def _redact(url: str) -> str:
    return url.split("@")[-1] if "@" in url else url


def build_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine with per-backend connection options.

    SQLite connections are shared across the event loop's worker tasks, so
    the same-thread check is disabled.  PostgreSQL connections are pinged
    on checkout so a restarted server does not surface as a store error.
    """
    kwargs: dict[str, Any] = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_pre_ping"] = True
    return create_async_engine(url, **kwargs)


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Rows stay readable after commit; workers log them after their transaction.
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables directly from metadata (development and tests only)."""
    from rockets.db import models  # noqa: F401  register tables with Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db() -> None:
    """Build the engine and session factory.

    Schema is normally owned by Alembic (``alembic upgrade head``); with
    ``ROCKETS_DB_CREATE_ALL=true`` tables are created here instead.
    """
    global _engine, _async_session_factory

    url = get_database_url()
    logger.info("Initializing database: %s", _redact(url))

    _engine = build_engine(url, echo=settings.debug)
    _async_session_factory = make_session_factory(_engine)

    if settings.db_create_all:
        await create_schema(_engine)
        logger.info("Database tables created from metadata")

    logger.info("✅ Database initialized")


async def close_db() -> None:
    """Dispose of the engine.  Safe to call when never initialized."""
    global _engine, _async_session_factory

    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _async_session_factory = None
    logger.info("Database connection closed")


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request-scoped session.

    Commits when the handler returns normally, rolls back if it raises.
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def AsyncSessionLocal() -> AsyncSession:
    """Open a session outside a request (background workers, scripts)."""
    return get_session_factory()()
