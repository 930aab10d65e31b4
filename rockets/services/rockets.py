"""Rockets service — the caller-facing operations.

- ``ingest``: serialize an inbound message and store it as a pending event
- ``get_rocket`` / ``list_rockets`` / ``get_event_status``: read-only queries

Database failures are re-raised as ``StoreError`` so callers can tell a
broken store apart from a "not found" (``None``) result.  Nothing here is
retried.
"""
from __future__ import annotations

import json
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rockets.db.models import EventRecord, Rocket
from rockets.errors import SerializationError, StoreError
from rockets.services import event_store, rocket_store
from rockets.services.rocket_store import RocketSortKey

logger = logging.getLogger(__name__)


def serialize_payload(payload: object) -> str:
    """Encode an inbound payload as compact JSON text.

    Raises:
        SerializationError: payload contains values JSON cannot represent
            (NaN, sets, arbitrary objects, ...).
    """
    try:
        return json.dumps(payload, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Payload cannot be serialized: {exc}") from exc


async def ingest(
    session: AsyncSession,
    *,
    entity_id: str,
    sequence_number: int,
    event_type: str,
    payload: object,
) -> int:
    """Store an inbound telemetry message as a pending event record.

    Commits its own transaction so the returned id is durable.

    Returns:
        The event record id (the existing id when the pair was seen before).

    Raises:
        SerializationError: payload cannot be encoded
        StoreError: the event could not be persisted
    """
    body = serialize_payload(payload)
    try:
        event_id = await event_store.create_or_replace_pending(
            session,
            entity_id=entity_id,
            sequence_number=sequence_number,
            event_type=event_type,
            payload=body,
        )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("❌ Failed to store event %s#%d: %s", entity_id, sequence_number, exc)
        raise StoreError(f"Failed to store event: {exc}") from exc

    logger.info(
        "Ingested event %d (%s#%d, %s)", event_id, entity_id, sequence_number, event_type
    )
    return event_id


async def get_rocket(session: AsyncSession, rocket_id: str) -> Rocket | None:
    """Return the current state of a rocket, or None if unknown."""
    try:
        return await rocket_store.get_rocket(session, rocket_id)
    except SQLAlchemyError as exc:
        raise StoreError(f"Failed to get rocket: {exc}") from exc


async def list_rockets(
    session: AsyncSession,
    sort_key: RocketSortKey | None = None,
) -> list[Rocket]:
    """Return all rockets, ordered by ``sort_key`` (default: newest update first)."""
    try:
        return await rocket_store.list_rockets(session, sort_key)
    except SQLAlchemyError as exc:
        raise StoreError(f"Failed to list rockets: {exc}") from exc


async def get_event_status(session: AsyncSession, event_id: int) -> EventRecord | None:
    """Return an event record with its processing status, or None if unknown."""
    try:
        return await event_store.get_event(session, event_id)
    except SQLAlchemyError as exc:
        raise StoreError(f"Failed to get event: {exc}") from exc
