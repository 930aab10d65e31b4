"""Typed telemetry events.

Inbound payloads are stored as opaque JSON and only decoded here, at the
reducer boundary, into one of a closed set of event variants.  Anything the
service does not recognise becomes ``UnrecognizedEvent`` rather than an
exception, so the reducer can record it as a terminal failure.

Event type tags are accepted in both the long wire form (``RocketLaunched``)
and the short form (``Launched``).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union

from pydantic import AliasChoices, Field, ValidationError

from rockets.models.base import CamelModel

_TAG_PREFIX = "Rocket"


class RocketLaunched(CamelModel):
    """A rocket left the pad.  The wire payload names ``kind`` as ``type``."""

    event_type: ClassVar[str] = "RocketLaunched"

    kind: str = Field(..., validation_alias=AliasChoices("kind", "type"))
    launch_speed: int = Field(..., ge=0, strict=True)
    mission: str


class RocketSpeedIncreased(CamelModel):
    event_type: ClassVar[str] = "RocketSpeedIncreased"

    by: int = Field(..., ge=0, strict=True)


class RocketSpeedDecreased(CamelModel):
    event_type: ClassVar[str] = "RocketSpeedDecreased"

    by: int = Field(..., ge=0, strict=True)


class RocketExploded(CamelModel):
    event_type: ClassVar[str] = "RocketExploded"

    reason: str


class RocketMissionChanged(CamelModel):
    event_type: ClassVar[str] = "RocketMissionChanged"

    new_mission: str


@dataclass(frozen=True)
class UnrecognizedEvent:
    """An event whose type tag matches none of the known variants."""

    event_type: str


RocketEvent = Union[
    RocketLaunched,
    RocketSpeedIncreased,
    RocketSpeedDecreased,
    RocketExploded,
    RocketMissionChanged,
    UnrecognizedEvent,
]

EVENT_TYPES: dict[str, type[CamelModel]] = {
    model.event_type: model
    for model in (
        RocketLaunched,
        RocketSpeedIncreased,
        RocketSpeedDecreased,
        RocketExploded,
        RocketMissionChanged,
    )
}


def canonical_event_type(event_type: str) -> str:
    """Map a short tag (``Launched``) to its wire name (``RocketLaunched``)."""
    if event_type in EVENT_TYPES:
        return event_type
    return f"{_TAG_PREFIX}{event_type}"


def decode_event(event_type: str, payload: str | bytes) -> RocketEvent:
    """Decode a stored payload into its event variant.

    Raises:
        pydantic.ValidationError: payload is not valid JSON or does not
            match the variant's fields.
    """
    model = EVENT_TYPES.get(canonical_event_type(event_type))
    if model is None:
        return UnrecognizedEvent(event_type=event_type)
    return model.model_validate_json(payload)


def describe_validation_error(exc: ValidationError) -> str:
    """One-line summary of a payload validation error for ``error_message``."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)
