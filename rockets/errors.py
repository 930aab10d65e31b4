"""Exception types for the rockets service."""
from __future__ import annotations


class RocketsError(Exception):
    """Base exception for rockets service errors."""


class SerializationError(RocketsError):
    """Raised when an inbound payload cannot be encoded for storage."""


class StoreError(RocketsError):
    """Raised when the event or rocket store cannot complete an operation."""


class InvalidTransitionError(RocketsError):
    """Raised on an event status transition the lifecycle does not allow.

    This is a programming error, not a data error: the dispatcher only ever
    requests pending -> processing -> processed/failed.
    """

    def __init__(self, event_id: int, current: str | None, target: str) -> None:
        self.event_id = event_id
        self.current = current
        self.target = target
        super().__init__(f"Event {event_id}: cannot transition {current} -> {target}")
