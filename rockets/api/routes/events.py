"""Event status endpoint.

  GET /events/{event_id} — an ingested event and its processing status
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from rockets.api.envelope import envelope
from rockets.db import get_db
from rockets.models.rockets import APIResponse, EventResponse
from rockets.services import rockets as rockets_service

router = APIRouter()


@router.get(
    "/events/{event_id}",
    response_model=APIResponse[EventResponse],
    operation_id="getEventStatus",
    tags=["events"],
)
async def get_event_status(
    event_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> APIResponse[EventResponse]:
    """Return an event record: pending, processing, processed or failed."""
    row = await rockets_service.get_event_status(db, event_id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="event not found")
    return envelope(request, EventResponse.from_row(row))
