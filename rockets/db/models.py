"""
SQLAlchemy ORM models for the rockets service.

Tables:
- events: Every inbound telemetry message, with its processing status
- entities: Current reduced state per rocket
"""
from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rockets.db.database import Base


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a naive timestamp read back from SQLite."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class EventStatus(str, enum.Enum):
    """Lifecycle of an event record.

    pending -> processing -> processed | failed
    """

    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({EventStatus.PROCESSED, EventStatus.FAILED})


class RocketStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPLODED = "exploded"


class EventRecord(Base):
    """
    A received telemetry message awaiting or having completed reduction.

    ``(entity_id, sequence_number)`` is unique: a redelivery of the same
    message lands on the same row instead of creating a second one.
    ``payload`` is the serialized JSON body exactly as ingested; it is only
    decoded by the reducer.
    """
    __tablename__ = "events"
    __table_args__ = (
        UniqueConstraint("entity_id", "sequence_number", name="uq_events_entity_sequence"),
        Index("ix_events_status", "status"),
        Index("ix_events_received_at", "received_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=EventStatus.PENDING.value,
    )
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    # Set only when status is "failed"
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    # When a worker moved the row to "processing"; drives the reclaim sweep
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<EventRecord {self.id} {self.entity_id}#{self.sequence_number} "
            f"{self.event_type} {self.status}>"
        )


class Rocket(Base):
    """
    Current state of one rocket, folded from its applied events.

    Rows are only written through the conditional upsert in
    ``rockets.services.rocket_store``, which refuses to move
    ``last_applied_sequence`` backwards.
    """
    __tablename__ = "entities"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    current_speed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mission: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RocketStatus.ACTIVE.value,
    )
    explosion_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    launch_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    last_applied_sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Rocket {self.id} seq={self.last_applied_sequence} {self.status}>"
