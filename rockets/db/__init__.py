"""
Database module for the rockets service.

Provides async SQLAlchemy support with PostgreSQL and SQLite.
"""
from __future__ import annotations

from rockets.db.database import (
    get_db,
    init_db,
    close_db,
    AsyncSessionLocal,
)
from rockets.db.models import EventRecord, EventStatus, Rocket, RocketStatus

__all__ = [
    "get_db",
    "init_db",
    "close_db",
    "AsyncSessionLocal",
    "EventRecord",
    "EventStatus",
    "Rocket",
    "RocketStatus",
]
