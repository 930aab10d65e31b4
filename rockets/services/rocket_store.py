"""Rocket store — current per-rocket state.

Reads return ORM rows; writes go exclusively through ``conditional_upsert``,
a single ``INSERT ... ON CONFLICT DO UPDATE ... WHERE`` that only replaces a
stored row when the incoming ``last_applied_sequence`` is strictly greater.
Two workers racing on the same rocket therefore cannot move it backwards:
the loser's write is silently dropped.

All functions take the caller's session.  The caller must commit.
"""
from __future__ import annotations

import enum
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rockets.core.state import RocketState
from rockets.db.dialects import upsert_insert
from rockets.db.models import Rocket, RocketStatus, as_utc

logger = logging.getLogger(__name__)


class RocketSortKey(str, enum.Enum):
    """Sort keys accepted by ``list_rockets`` (wire names)."""

    KIND = "kind"
    SPEED = "speed"
    MISSION = "mission"
    STATUS = "status"
    LAUNCH_TIME = "launchTime"
    LAST_UPDATED = "lastUpdated"


_SORT_COLUMNS = {
    RocketSortKey.KIND: Rocket.kind,
    RocketSortKey.SPEED: Rocket.current_speed,
    RocketSortKey.MISSION: Rocket.mission,
    RocketSortKey.STATUS: Rocket.status,
    RocketSortKey.LAUNCH_TIME: Rocket.launch_time,
    RocketSortKey.LAST_UPDATED: Rocket.last_updated,
}


def to_state(row: Rocket) -> RocketState:
    """Convert a stored rocket row into reducer state."""
    return RocketState(
        id=row.id,
        kind=row.kind,
        current_speed=row.current_speed,
        mission=row.mission,
        status=RocketStatus(row.status),
        explosion_reason=row.explosion_reason,
        launch_time=as_utc(row.launch_time),
        last_updated=as_utc(row.last_updated),
        last_applied_sequence=row.last_applied_sequence,
    )


async def get_rocket(session: AsyncSession, rocket_id: str) -> Rocket | None:
    """Return a rocket by id, or None if no event for it has been applied."""
    stmt = (
        select(Rocket)
        .where(Rocket.id == rocket_id)
        .execution_options(populate_existing=True)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def list_rockets(
    session: AsyncSession,
    sort_key: RocketSortKey | None = None,
) -> list[Rocket]:
    """Return all rockets.

    An explicit ``sort_key`` sorts ascending on that field.  Without one the
    most recently updated rockets come first.  Ties break on id so the order
    is stable.
    """
    if sort_key is None:
        order = (Rocket.last_updated.desc(), Rocket.id)
    else:
        order = (_SORT_COLUMNS[RocketSortKey(sort_key)].asc(), Rocket.id)
    stmt = select(Rocket).order_by(*order).execution_options(populate_existing=True)
    rows = (await session.execute(stmt)).scalars().all()
    return list(rows)


async def conditional_upsert(session: AsyncSession, state: RocketState) -> bool:
    """Insert ``state``, or replace the stored row if ``state`` is newer.

    Returns:
        True if the row was written.  False when the stored
        ``last_applied_sequence`` is already >= ``state``'s, which means
        another attempt applied a newer (or the same) event first.
    """
    insert = upsert_insert(session)
    values = {
        "id": state.id,
        "kind": state.kind,
        "current_speed": state.current_speed,
        "mission": state.mission,
        "status": RocketStatus(state.status).value,
        "explosion_reason": state.explosion_reason,
        "launch_time": state.launch_time,
        "last_updated": state.last_updated,
        "last_applied_sequence": state.last_applied_sequence,
    }
    stmt = insert(Rocket).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["id"],
        set_={key: getattr(stmt.excluded, key) for key in values if key != "id"},
        where=stmt.excluded.last_applied_sequence > Rocket.last_applied_sequence,
    ).returning(Rocket.id)

    written = (await session.execute(stmt)).scalar_one_or_none() is not None
    if not written:
        logger.debug(
            "Skipped stale write for rocket %s (seq %d)",
            state.id, state.last_applied_sequence,
        )
    return written
