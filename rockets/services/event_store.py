"""Event record store — durable inbound events and their status lifecycle.

Every telemetry message lands here as a ``pending`` row before anything else
happens to it.  The dispatcher drains pending rows and moves each one
through ``processing`` to ``processed`` or ``failed``.

Status transitions are conditional UPDATEs on the expected prior status, so
they double as the synchronisation point between concurrent workers: only
one worker can win the ``pending -> processing`` claim for a row.

Re-ingestion of an existing ``(entity_id, sequence_number)``:
- ``pending``: type, payload and receipt time are replaced in place
- ``processed`` / ``failed``: replaced and reset to ``pending`` so the event
  is processed again (the ordering guard makes a stale replay a no-op)
- ``processing``: left untouched; the in-flight row wins

All functions take the caller's session.  The caller must commit.
"""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rockets.db.dialects import upsert_insert
from rockets.db.models import TERMINAL_STATUSES, EventRecord, EventStatus, utc_now
from rockets.errors import InvalidTransitionError

logger = logging.getLogger(__name__)

# target status -> the only status it may be entered from
_ALLOWED_FROM: dict[EventStatus, EventStatus] = {
    EventStatus.PROCESSING: EventStatus.PENDING,
    EventStatus.PROCESSED: EventStatus.PROCESSING,
    EventStatus.FAILED: EventStatus.PROCESSING,
}

_DEFAULT_FAILURE_MESSAGE = "event processing failed"


async def create_or_replace_pending(
    session: AsyncSession,
    *,
    entity_id: str,
    sequence_number: int,
    event_type: str,
    payload: str,
) -> int:
    """Insert a pending event, or replace the existing row for the same pair.

    Returns the event record id.  A replaced row keeps its original id.
    """
    insert = upsert_insert(session)
    stmt = insert(EventRecord).values(
        entity_id=entity_id,
        sequence_number=sequence_number,
        event_type=event_type,
        payload=payload,
        status=EventStatus.PENDING.value,
        received_at=utc_now(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["entity_id", "sequence_number"],
        set_={
            "event_type": stmt.excluded.event_type,
            "payload": stmt.excluded.payload,
            "received_at": stmt.excluded.received_at,
            "status": EventStatus.PENDING.value,
            "processed_at": None,
            "error_message": None,
            "claimed_at": None,
        },
        where=EventRecord.status != EventStatus.PROCESSING.value,
    ).returning(EventRecord.id)

    event_id = (await session.execute(stmt)).scalar_one_or_none()
    if event_id is not None:
        return int(event_id)

    # Conflict with a row that is mid-processing: keep it, hand back its id.
    existing = await session.execute(
        select(EventRecord.id).where(
            EventRecord.entity_id == entity_id,
            EventRecord.sequence_number == sequence_number,
        )
    )
    event_id = existing.scalar_one()
    logger.debug(
        "Event %s#%d is already processing, keeping event %d",
        entity_id, sequence_number, event_id,
    )
    return int(event_id)


async def get_event(session: AsyncSession, event_id: int) -> EventRecord | None:
    """Return a single event record by id, or None if not found."""
    stmt = (
        select(EventRecord)
        .where(EventRecord.id == event_id)
        .execution_options(populate_existing=True)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def fetch_pending_batch(session: AsyncSession, limit: int) -> list[EventRecord]:
    """Return up to ``limit`` pending events, oldest receipt first.

    The rows are not locked.  Callers claim each one with
    ``update_status(..., EventStatus.PROCESSING)`` and skip those they lose.
    """
    stmt = (
        select(EventRecord)
        .where(EventRecord.status == EventStatus.PENDING.value)
        .order_by(EventRecord.received_at, EventRecord.id)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    rows = (await session.execute(stmt)).scalars().all()
    return list(rows)


async def update_status(
    session: AsyncSession,
    event_id: int,
    status: EventStatus,
    error_message: str | None = None,
) -> bool:
    """Move an event to ``status``.

    Allowed: pending -> processing, processing -> processed,
    processing -> failed.  Terminal statuses stamp ``processed_at``;
    ``error_message`` is only kept for ``failed``.

    Returns:
        True if the transition was applied.  False only for a
        ``processing`` claim that another worker won first.

    Raises:
        InvalidTransitionError: any other transition, or an unknown event.
    """
    status = EventStatus(status)
    allowed_from = _ALLOWED_FROM.get(status)
    if allowed_from is None:
        current = (
            await session.execute(select(EventRecord.status).where(EventRecord.id == event_id))
        ).scalar_one_or_none()
        raise InvalidTransitionError(event_id, current, status.value)

    now = utc_now()
    values: dict[str, object] = {"status": status.value}
    if status is EventStatus.PROCESSING:
        values["claimed_at"] = now
    if status in TERMINAL_STATUSES:
        values["processed_at"] = now
        values["error_message"] = (
            (error_message or _DEFAULT_FAILURE_MESSAGE) if status is EventStatus.FAILED else None
        )

    result = await session.execute(
        update(EventRecord)
        .where(
            EventRecord.id == event_id,
            EventRecord.status == allowed_from.value,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if (getattr(result, "rowcount", 0) or 0) == 1:
        return True

    current = (
        await session.execute(select(EventRecord.status).where(EventRecord.id == event_id))
    ).scalar_one_or_none()
    if status is EventStatus.PROCESSING and current is not None:
        logger.debug("Lost claim on event %d (now %s)", event_id, current)
        return False
    raise InvalidTransitionError(event_id, current, status.value)


async def claim_event(session: AsyncSession, event_id: int) -> EventRecord | None:
    """Claim a pending event for processing and return the row as claimed.

    A pending row can be replaced by re-ingestion right up until it is
    claimed, so the copy read by ``fetch_pending_batch`` may be out of date.
    The row is re-read inside the claiming transaction; once it is
    ``processing`` re-ingestion leaves it alone, so this copy is final.

    Returns None when another worker won the claim.
    """
    if not await update_status(session, event_id, EventStatus.PROCESSING):
        return None
    return await get_event(session, event_id)


async def reclaim_stale(session: AsyncSession, older_than: datetime) -> int:
    """Return ``processing`` rows claimed before ``older_than`` to ``pending``.

    A worker that crashes or hits a store error mid-event leaves its row in
    ``processing``; this is the only way such a row becomes eligible again.
    Returns the number of rows reclaimed.
    """
    result = await session.execute(
        update(EventRecord)
        .where(
            EventRecord.status == EventStatus.PROCESSING.value,
            EventRecord.claimed_at < older_than,
        )
        .values(status=EventStatus.PENDING.value, claimed_at=None)
        .execution_options(synchronize_session=False)
    )
    count = int(getattr(result, "rowcount", 0) or 0)
    if count > 0:
        logger.warning("⚠️ Reclaimed %d event(s) stuck in processing", count)
    return count


async def count_by_status(session: AsyncSession) -> dict[EventStatus, int]:
    """Return the number of event records in each status (zeros included)."""
    stmt = select(EventRecord.status, func.count()).group_by(EventRecord.status)
    counts = {s: 0 for s in EventStatus}
    for status, count in (await session.execute(stmt)).all():
        counts[EventStatus(status)] = int(count)
    return counts
