"""
Reducer: pure state transitions for rocket telemetry.

``reduce`` folds one stored event into the previous ``RocketState``:
- Pure (no I/O; the clock is passed in as ``now``)
- Deterministic (same state, event and ``now`` give the same result)
- Total (bad payloads and unknown types return ``TerminalFailure``
  instead of raising)

Ordering is not decided here.  The processor drops stale and duplicate
sequence numbers before calling ``reduce`` and stamps
``last_applied_sequence`` on the result.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Any, Callable

from pydantic import ValidationError

from rockets.core.events import (
    RocketExploded,
    RocketLaunched,
    RocketMissionChanged,
    RocketSpeedDecreased,
    RocketSpeedIncreased,
    UnrecognizedEvent,
    decode_event,
    describe_validation_error,
)
from rockets.core.state import RocketState, TerminalFailure
from rockets.db.models import RocketStatus

# Handler signature: (current_state, event, now) -> next_state
Handler = Callable[[RocketState, Any, datetime], RocketState]


def _launched(state: RocketState, event: RocketLaunched, now: datetime) -> RocketState:
    return replace(
        state,
        kind=event.kind,
        current_speed=event.launch_speed,
        mission=event.mission,
        launch_time=now,
        status=RocketStatus.ACTIVE,
    )


def _speed_increased(state: RocketState, event: RocketSpeedIncreased, now: datetime) -> RocketState:
    return replace(state, current_speed=state.current_speed + event.by)


def _speed_decreased(state: RocketState, event: RocketSpeedDecreased, now: datetime) -> RocketState:
    return replace(state, current_speed=max(0, state.current_speed - event.by))


def _exploded(state: RocketState, event: RocketExploded, now: datetime) -> RocketState:
    return replace(
        state,
        status=RocketStatus.EXPLODED,
        explosion_reason=event.reason,
        current_speed=0,
    )


def _mission_changed(state: RocketState, event: RocketMissionChanged, now: datetime) -> RocketState:
    return replace(state, mission=event.new_mission)


_HANDLERS: dict[type, Handler] = {
    RocketLaunched: _launched,
    RocketSpeedIncreased: _speed_increased,
    RocketSpeedDecreased: _speed_decreased,
    RocketExploded: _exploded,
    RocketMissionChanged: _mission_changed,
}


def reduce(
    state: RocketState | None,
    event_type: str,
    payload: str | bytes,
    *,
    rocket_id: str,
    now: datetime,
) -> RocketState | TerminalFailure:
    """Apply one event to a rocket's state.

    Args:
        state: Current state, or None if the rocket has never been seen
        event_type: Stored event type tag
        payload: Serialized JSON payload as stored at ingestion
        rocket_id: Rocket the event belongs to (used when ``state`` is None)
        now: Clock reading for ``launch_time``

    Returns:
        The next state, or ``TerminalFailure`` if the event can never apply.
        ``last_applied_sequence`` and ``last_updated`` are left for the caller.
    """
    try:
        event = decode_event(event_type, payload)
    except ValidationError as exc:
        return TerminalFailure(
            f"malformed {event_type} payload: {describe_validation_error(exc)}"
        )

    if isinstance(event, UnrecognizedEvent):
        return TerminalFailure(f"unknown event type: {event.event_type}")

    current = state if state is not None else RocketState.initial(rocket_id, now)
    return _HANDLERS[type(event)](current, event, now)
