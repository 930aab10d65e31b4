"""Rocket state query endpoints.

  GET /rockets        — list all rockets (``?sortBy=`` one of the sort keys)
  GET /rockets/{id}   — a single rocket
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from rockets.api.envelope import envelope
from rockets.db import get_db
from rockets.models.rockets import APIResponse, RocketResponse
from rockets.services import rockets as rockets_service
from rockets.services.rocket_store import RocketSortKey

router = APIRouter()


@router.get(
    "/rockets",
    response_model=APIResponse[list[RocketResponse]],
    operation_id="listRockets",
    tags=["rockets"],
)
async def list_rockets(
    request: Request,
    sort_by: RocketSortKey | None = Query(None, alias="sortBy"),
    db: AsyncSession = Depends(get_db),
) -> APIResponse[list[RocketResponse]]:
    """Return every known rocket.  Defaults to most recently updated first."""
    rows = await rockets_service.list_rockets(db, sort_by)
    return envelope(request, [RocketResponse.from_row(r) for r in rows])


@router.get(
    "/rockets/{rocket_id}",
    response_model=APIResponse[RocketResponse],
    operation_id="getRocket",
    tags=["rockets"],
)
async def get_rocket(
    rocket_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> APIResponse[RocketResponse]:
    """Return the current state of one rocket."""
    row = await rockets_service.get_rocket(db, rocket_id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="rocket not found")
    return envelope(request, RocketResponse.from_row(row))
