"""Tests for rockets/core/reducer.py and rockets/core/events.py.

Coverage:
- Each event handler's effect on state
- Speed floor on SpeedDecreased
- Short and long event type tags; ``type`` alias for ``kind``
- Unknown types and malformed payloads become TerminalFailure
- Determinism: in-order application with duplicate deliveries gives the
  same state as a clean run
"""
from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from rockets.core.events import (
    RocketLaunched,
    UnrecognizedEvent,
    canonical_event_type,
    decode_event,
)
from rockets.core.reducer import reduce
from rockets.core.state import RocketState, TerminalFailure
from rockets.db.models import RocketStatus

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
LATER = datetime(2026, 1, 1, 12, 5, tzinfo=timezone.utc)


def _apply(state: RocketState | None, event_type: str, payload: dict[str, object]) -> RocketState:
    result = reduce(state, event_type, json.dumps(payload), rocket_id="r-1", now=NOW)
    assert isinstance(result, RocketState), result
    return result


def _fold(events: list[tuple[int, str, dict[str, object]]]) -> RocketState | None:
    """Apply events the way the processor does: skip stale sequence numbers."""
    state: RocketState | None = None
    for seq, event_type, payload in events:
        if state is not None and seq <= state.last_applied_sequence:
            continue
        result = reduce(state, event_type, json.dumps(payload), rocket_id="r-1", now=NOW)
        assert isinstance(result, RocketState)
        state = replace(result, last_applied_sequence=seq, last_updated=NOW)
    return state


def _launched_state() -> RocketState:
    return _apply(None, "RocketLaunched", {"type": "Falcon-9", "launchSpeed": 500, "mission": "ARTEMIS"})


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def test_launched_creates_active_rocket() -> None:
    state = _launched_state()
    assert state.id == "r-1"
    assert state.kind == "Falcon-9"
    assert state.current_speed == 500
    assert state.mission == "ARTEMIS"
    assert state.status is RocketStatus.ACTIVE
    assert state.launch_time == NOW
    assert state.explosion_reason is None
    assert state.last_applied_sequence == 0


def test_launched_accepts_kind_field_name() -> None:
    state = _apply(None, "Launched", {"kind": "Starship", "launchSpeed": 1200, "mission": "MARS"})
    assert state.kind == "Starship"
    assert state.current_speed == 1200


def test_speed_increased_adds() -> None:
    state = _apply(_launched_state(), "RocketSpeedIncreased", {"by": 300})
    assert state.current_speed == 800


def test_speed_decreased_subtracts() -> None:
    state = _apply(_launched_state(), "RocketSpeedDecreased", {"by": 200})
    assert state.current_speed == 300


@pytest.mark.parametrize("decrements", [[600], [100, 100, 400], [499, 2, 1]])
def test_speed_never_goes_negative(decrements: list[int]) -> None:
    state = _launched_state()
    for by in decrements:
        state = _apply(state, "SpeedDecreased", {"by": by})
        assert state.current_speed >= 0
    assert state.current_speed == max(0, 500 - sum(decrements))


def test_exploded_resets_speed_and_records_reason() -> None:
    state = _apply(_launched_state(), "RocketExploded", {"reason": "engine malfunction"})
    assert state.status is RocketStatus.EXPLODED
    assert state.explosion_reason == "engine malfunction"
    assert state.current_speed == 0
    assert state.mission == "ARTEMIS"


def test_mission_changed() -> None:
    state = _apply(_launched_state(), "RocketMissionChanged", {"newMission": "SHUTTLE_MIR"})
    assert state.mission == "SHUTTLE_MIR"
    assert state.current_speed == 500


def test_event_for_unseen_rocket_starts_from_fresh_state() -> None:
    state = _apply(None, "SpeedIncreased", {"by": 50})
    assert state.id == "r-1"
    assert state.status is RocketStatus.ACTIVE
    assert state.current_speed == 50
    assert state.kind == ""
    assert state.last_applied_sequence == 0


def test_launch_time_uses_supplied_clock() -> None:
    first = _launched_state()
    relaunched = reduce(
        first,
        "RocketLaunched",
        json.dumps({"type": "Falcon-9", "launchSpeed": 10, "mission": "X"}),
        rocket_id="r-1",
        now=LATER,
    )
    assert isinstance(relaunched, RocketState)
    assert relaunched.launch_time == LATER


def test_reduce_does_not_mutate_input() -> None:
    state = _launched_state()
    _apply(state, "SpeedIncreased", {"by": 1})
    assert state.current_speed == 500


# ---------------------------------------------------------------------------
# Terminal failures
# ---------------------------------------------------------------------------


def test_unknown_event_type_is_terminal_failure() -> None:
    result = reduce(_launched_state(), "Bogus", "{}", rocket_id="r-1", now=NOW)
    assert isinstance(result, TerminalFailure)
    assert "unknown event type" in result.reason
    assert "Bogus" in result.reason


@pytest.mark.parametrize(
    "event_type, payload",
    [
        ("RocketSpeedIncreased", "not json"),
        ("RocketSpeedIncreased", json.dumps({"by": "fast"})),
        ("RocketSpeedIncreased", json.dumps({})),
        ("RocketSpeedDecreased", json.dumps({"by": -5})),
        ("RocketSpeedIncreased", json.dumps({"by": "300"})),
        ("RocketLaunched", json.dumps({"type": "Falcon-9", "launchSpeed": "500", "mission": "X"})),
        ("RocketLaunched", json.dumps({"type": "Falcon-9", "mission": "X"})),
        ("RocketLaunched", json.dumps({"type": "Falcon-9", "launchSpeed": -1, "mission": "X"})),
        ("RocketExploded", json.dumps(None)),
        ("RocketMissionChanged", json.dumps({"mission": "wrong field"})),
    ],
)
def test_malformed_payload_is_terminal_failure(event_type: str, payload: str) -> None:
    result = reduce(_launched_state(), event_type, payload, rocket_id="r-1", now=NOW)
    assert isinstance(result, TerminalFailure)
    assert result.reason.startswith(f"malformed {event_type} payload")


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def test_canonical_event_type_maps_short_names() -> None:
    assert canonical_event_type("Launched") == "RocketLaunched"
    assert canonical_event_type("RocketExploded") == "RocketExploded"


def test_decode_event_returns_variant() -> None:
    event = decode_event("Launched", b'{"type": "Falcon-9", "launchSpeed": 1, "mission": "M"}')
    assert isinstance(event, RocketLaunched)
    assert event.launch_speed == 1


def test_decode_unknown_event_type() -> None:
    event = decode_event("Rocket", "{}")
    assert event == UnrecognizedEvent(event_type="Rocket")


# ---------------------------------------------------------------------------
# Determinism
# ---------------------------------------------------------------------------


_HISTORY: list[tuple[int, str, dict[str, object]]] = [
    (1, "RocketLaunched", {"type": "Falcon-9", "launchSpeed": 500, "mission": "ARTEMIS"}),
    (2, "RocketSpeedIncreased", {"by": 300}),
    (3, "RocketSpeedDecreased", {"by": 1000}),
    (4, "RocketMissionChanged", {"newMission": "GATEWAY"}),
    (5, "RocketSpeedIncreased", {"by": 42}),
]


def test_fold_is_deterministic() -> None:
    assert _fold(_HISTORY) == _fold(list(_HISTORY))


def test_duplicate_deliveries_do_not_change_final_state() -> None:
    with_duplicates = [
        _HISTORY[0],
        _HISTORY[0],
        _HISTORY[1],
        _HISTORY[0],
        _HISTORY[2],
        _HISTORY[1],
        _HISTORY[3],
        _HISTORY[4],
        _HISTORY[4],
        _HISTORY[2],
    ]
    clean = _fold(_HISTORY)
    assert _fold(with_duplicates) == clean
    assert clean is not None
    assert clean.current_speed == 42
    assert clean.mission == "GATEWAY"
    assert clean.last_applied_sequence == 5
