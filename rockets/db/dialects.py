"""Dialect-specific INSERT constructs.

Both stores rely on ``INSERT ... ON CONFLICT DO UPDATE ... WHERE`` so that
"insert or conditionally replace" is a single atomic statement.  SQLAlchemy
exposes it per dialect; this picks the right one for a session's bind.
"""
from __future__ import annotations

from typing import Any, Callable

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from rockets.errors import StoreError

_INSERTS: dict[str, Callable[..., Any]] = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_insert(session: AsyncSession) -> Callable[..., Any]:
    """Return the dialect ``insert`` that supports ``on_conflict_do_update``."""
    dialect = session.get_bind().dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise StoreError(f"Unsupported database dialect for upserts: {dialect}")
    return insert
