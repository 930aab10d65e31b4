"""Pydantic v2 request/response models for the rockets API.

All wire-format fields use camelCase via CamelModel.  Every response body is
wrapped in ``APIResponse`` so clients always get a ``requestId`` back.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Generic, Literal, TypeVar

from pydantic import Field

from rockets.db.models import EventRecord, Rocket, as_utc
from rockets.models.base import CamelModel

T = TypeVar("T")


# ── Envelope ──────────────────────────────────────────────────────────────────


class APIResponse(CamelModel, Generic[T]):
    """Uniform response envelope: ``data`` on success, ``error`` on failure."""

    request_id: str
    data: T | None = None
    error: str | None = None


# ── Ingestion ─────────────────────────────────────────────────────────────────


class MessageMetadata(CamelModel):
    """Routing metadata sent by the rockets alongside every message.

    ``channel`` identifies the rocket; ``message_number`` is its sequence.
    """

    channel: str = Field(..., min_length=1, max_length=64)
    message_number: int = Field(..., ge=0)
    message_time: datetime | None = None
    message_type: str = Field(..., min_length=1, max_length=64)


class IncomingMessage(CamelModel):
    """Body for POST /messages."""

    metadata: MessageMetadata
    message: Any = None


class IngestResponse(CamelModel):
    """Response for POST /messages."""

    status: Literal["ingested"] = "ingested"
    event_id: int


# ── Queries ───────────────────────────────────────────────────────────────────


class RocketResponse(CamelModel):
    """Current state of one rocket."""

    id: str
    kind: str
    current_speed: int
    mission: str
    status: str
    explosion_reason: str | None = None
    launch_time: datetime
    last_updated: datetime
    last_applied_sequence: int

    @classmethod
    def from_row(cls, row: Rocket) -> RocketResponse:
        return cls(
            id=row.id,
            kind=row.kind,
            current_speed=row.current_speed,
            mission=row.mission,
            status=row.status,
            explosion_reason=row.explosion_reason,
            launch_time=as_utc(row.launch_time),
            last_updated=as_utc(row.last_updated),
            last_applied_sequence=row.last_applied_sequence,
        )


class EventResponse(CamelModel):
    """An event record and where it is in its processing lifecycle."""

    id: int
    entity_id: str
    sequence_number: int
    event_type: str
    payload: Any = None
    status: str
    received_at: datetime
    processed_at: datetime | None = None
    error_message: str | None = None

    @classmethod
    def from_row(cls, row: EventRecord) -> EventResponse:
        return cls(
            id=row.id,
            entity_id=row.entity_id,
            sequence_number=row.sequence_number,
            event_type=row.event_type,
            payload=json.loads(row.payload),
            status=row.status,
            received_at=as_utc(row.received_at),
            processed_at=as_utc(row.processed_at) if row.processed_at else None,
            error_message=row.error_message,
        )


class HealthResponse(CamelModel):
    """Response for GET /health."""

    status: str
    service: str
    version: str
    processor: str
    events: dict[str, int] = Field(default_factory=dict)
