"""Tests for rockets/services/rocket_store.py — the monotonic conditional upsert
and the rocket queries."""
from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rockets.core.state import RocketState
from rockets.db.models import RocketStatus
from rockets.services import rocket_store
from rockets.services.rocket_store import RocketSortKey

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _state(rocket_id: str = "r-1", seq: int = 1, **overrides: object) -> RocketState:
    base = RocketState(
        id=rocket_id,
        kind="Falcon-9",
        current_speed=100,
        mission="ARTEMIS",
        status=RocketStatus.ACTIVE,
        explosion_reason=None,
        launch_time=T0,
        last_updated=T0 + timedelta(seconds=seq),
        last_applied_sequence=seq,
    )
    return replace(base, **overrides)


async def _upsert(session: AsyncSession, state: RocketState) -> bool:
    written = await rocket_store.conditional_upsert(session, state)
    await session.commit()
    return written


@pytest.mark.asyncio
async def test_insert_new_rocket(db_session: AsyncSession) -> None:
    assert await _upsert(db_session, _state()) is True
    row = await rocket_store.get_rocket(db_session, "r-1")
    assert row is not None
    assert row.kind == "Falcon-9"
    assert row.current_speed == 100
    assert row.last_applied_sequence == 1
    assert rocket_store.to_state(row) == _state()


@pytest.mark.asyncio
async def test_newer_sequence_replaces(db_session: AsyncSession) -> None:
    await _upsert(db_session, _state(seq=1))
    assert await _upsert(db_session, _state(seq=2, current_speed=400)) is True
    row = await rocket_store.get_rocket(db_session, "r-1")
    assert row is not None
    assert row.current_speed == 400
    assert row.last_applied_sequence == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("stale_seq", [1, 3])
async def test_stale_or_equal_sequence_is_dropped(
    db_session: AsyncSession, stale_seq: int
) -> None:
    await _upsert(db_session, _state(seq=3, current_speed=300))
    assert await _upsert(db_session, _state(seq=stale_seq, current_speed=999)) is False
    row = await rocket_store.get_rocket(db_session, "r-1")
    assert row is not None
    assert row.current_speed == 300
    assert row.last_applied_sequence == 3


@pytest.mark.asyncio
async def test_concurrent_writers_keep_highest_sequence(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    async def write(seq: int) -> bool:
        async with session_factory() as session:
            return await _upsert(session, _state(seq=seq, current_speed=seq * 10))

    await asyncio.gather(*(write(seq) for seq in (4, 2, 7, 1, 5, 3, 6)))

    async with session_factory() as session:
        row = await rocket_store.get_rocket(session, "r-1")
    assert row is not None
    assert row.last_applied_sequence == 7
    assert row.current_speed == 70


@pytest.mark.asyncio
async def test_exploded_state_round_trips(db_session: AsyncSession) -> None:
    exploded = _state(status=RocketStatus.EXPLODED, explosion_reason="PRESSURE_VESSEL_FAILURE")
    await _upsert(db_session, exploded)
    row = await rocket_store.get_rocket(db_session, "r-1")
    assert row is not None
    assert row.status == RocketStatus.EXPLODED.value
    assert rocket_store.to_state(row).explosion_reason == "PRESSURE_VESSEL_FAILURE"


@pytest.mark.asyncio
async def test_get_unknown_rocket(db_session: AsyncSession) -> None:
    assert await rocket_store.get_rocket(db_session, "nope") is None


@pytest.mark.asyncio
async def test_list_empty(db_session: AsyncSession) -> None:
    assert await rocket_store.list_rockets(db_session) == []


@pytest.mark.asyncio
async def test_list_defaults_to_most_recently_updated(db_session: AsyncSession) -> None:
    await _upsert(db_session, _state("a", seq=1))
    await _upsert(db_session, _state("b", seq=3))
    await _upsert(db_session, _state("c", seq=2))
    rows = await rocket_store.list_rockets(db_session)
    assert [r.id for r in rows] == ["b", "c", "a"]


@pytest.mark.asyncio
async def test_list_sorted_by_speed(db_session: AsyncSession) -> None:
    await _upsert(db_session, _state("a", current_speed=300))
    await _upsert(db_session, _state("b", current_speed=100))
    await _upsert(db_session, _state("c", current_speed=200))
    rows = await rocket_store.list_rockets(db_session, RocketSortKey.SPEED)
    assert [r.id for r in rows] == ["b", "c", "a"]


@pytest.mark.asyncio
async def test_list_sorted_by_mission_breaks_ties_on_id(db_session: AsyncSession) -> None:
    await _upsert(db_session, _state("z", mission="APOLLO"))
    await _upsert(db_session, _state("y", mission="GEMINI"))
    await _upsert(db_session, _state("x", mission="APOLLO"))
    rows = await rocket_store.list_rockets(db_session, RocketSortKey("mission"))
    assert [r.id for r in rows] == ["x", "z", "y"]
