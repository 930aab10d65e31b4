"""Rocket state as seen by the reducer.

Plain immutable values with no ORM coupling: the reducer maps one
``RocketState`` to the next and the rocket store is responsible for
persisting it.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from rockets.db.models import RocketStatus


@dataclass(frozen=True)
class RocketState:
    """Current state of a single rocket.

    ``last_applied_sequence`` is the sequence number of the newest event
    folded into this state; 0 means nothing has been applied yet.
    """

    id: str
    kind: str
    current_speed: int
    mission: str
    status: RocketStatus
    explosion_reason: str | None
    launch_time: datetime
    last_updated: datetime
    last_applied_sequence: int = 0

    @staticmethod
    def initial(rocket_id: str, now: datetime) -> RocketState:
        """State for a rocket seen for the first time."""
        return RocketState(
            id=rocket_id,
            kind="",
            current_speed=0,
            mission="",
            status=RocketStatus.ACTIVE,
            explosion_reason=None,
            launch_time=now,
            last_updated=now,
            last_applied_sequence=0,
        )


@dataclass(frozen=True)
class TerminalFailure:
    """An event that can never be applied (bad payload, unknown type)."""

    reason: str
