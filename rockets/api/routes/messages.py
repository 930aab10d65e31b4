"""Telemetry ingestion endpoint.

  POST /messages — store an inbound rocket message for background processing

The response only confirms the message is durably queued; poll
``GET /events/{eventId}`` to see whether it was applied.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from rockets.api.envelope import envelope
from rockets.db import get_db
from rockets.models.rockets import APIResponse, IncomingMessage, IngestResponse
from rockets.services import rockets as rockets_service

router = APIRouter()


@router.post(
    "/messages",
    response_model=APIResponse[IngestResponse],
    status_code=status.HTTP_202_ACCEPTED,
    operation_id="ingestMessage",
    summary="Queue a rocket telemetry message",
    tags=["messages"],
)
async def ingest_message(
    body: IncomingMessage,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> APIResponse[IngestResponse]:
    """Queue one message.  Redelivering the same channel/messageNumber pair
    returns the same ``eventId``."""
    event_id = await rockets_service.ingest(
        db,
        entity_id=body.metadata.channel,
        sequence_number=body.metadata.message_number,
        event_type=body.metadata.message_type,
        payload=body.message,
    )
    return envelope(request, IngestResponse(event_id=event_id))
