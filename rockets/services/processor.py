"""Event processor — fold one claimed event record into rocket state.

``process_event`` runs inside a single transaction:

1. Ordering guard: if the rocket already applied this sequence number (or a
   later one) the record is marked ``processed`` and nothing else happens.
2. Reduce: decode and apply the event.  A ``TerminalFailure`` marks the
   record ``failed`` and leaves the rocket untouched.
3. Persist: stamp ``last_applied_sequence``/``last_updated`` and write the
   rocket with ``conditional_upsert``, then mark the record ``processed``.
   A write lost to a concurrent newer one still counts as processed.

Store errors propagate; the caller rolls back and the record stays
``processing`` until the reclaim sweep returns it to ``pending``.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import replace
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from rockets.core.reducer import reduce
from rockets.core.state import TerminalFailure
from rockets.db.models import EventRecord, EventStatus, utc_now
from rockets.services import event_store, rocket_store

logger = logging.getLogger(__name__)


class ProcessOutcome(str, enum.Enum):
    """What happened to a single event record."""

    APPLIED = "applied"          # rocket state advanced
    SUPERSEDED = "superseded"    # reduced, but a newer write won the race
    SKIPPED = "skipped"          # stale or duplicate sequence number
    FAILED = "failed"            # terminal failure recorded on the event


async def process_event(
    session: AsyncSession,
    record: EventRecord,
    *,
    now: datetime | None = None,
) -> ProcessOutcome:
    """Apply a claimed (``processing``) event record and finish its lifecycle.

    The caller must commit on success and roll back on exception.
    """
    now = now or utc_now()
    stored = await rocket_store.get_rocket(session, record.entity_id)

    if stored is not None and record.sequence_number <= stored.last_applied_sequence:
        logger.debug(
            "Skipping event %d: %s#%d already applied (last=%d)",
            record.id, record.entity_id, record.sequence_number,
            stored.last_applied_sequence,
        )
        await event_store.update_status(session, record.id, EventStatus.PROCESSED)
        return ProcessOutcome.SKIPPED

    current = rocket_store.to_state(stored) if stored is not None else None
    result = reduce(
        current,
        record.event_type,
        record.payload,
        rocket_id=record.entity_id,
        now=now,
    )

    if isinstance(result, TerminalFailure):
        logger.warning(
            "⚠️ Event %d (%s#%d, %s) failed: %s",
            record.id, record.entity_id, record.sequence_number,
            record.event_type, result.reason,
        )
        await event_store.update_status(
            session, record.id, EventStatus.FAILED, error_message=result.reason
        )
        return ProcessOutcome.FAILED

    next_state = replace(
        result,
        last_applied_sequence=record.sequence_number,
        last_updated=now,
    )
    written = await rocket_store.conditional_upsert(session, next_state)
    await event_store.update_status(session, record.id, EventStatus.PROCESSED)

    if not written:
        logger.info(
            "Event %d for %s#%d superseded by a newer write",
            record.id, record.entity_id, record.sequence_number,
        )
        return ProcessOutcome.SUPERSEDED
    return ProcessOutcome.APPLIED
