"""Health check endpoint."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rockets.api.envelope import envelope
from rockets.config import settings
from rockets.db import get_db
from rockets.models.rockets import APIResponse, HealthResponse
from rockets.services import event_store
from rockets.worker.dispatcher import DispatcherState

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/health",
    response_model=APIResponse[HealthResponse],
    operation_id="healthCheck",
    tags=["health"],
)
async def health_check(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> APIResponse[HealthResponse]:
    """Liveness probe with event backlog counts.

    ``status`` is ``degraded`` when the database cannot be queried; the
    endpoint itself still answers 200 so the probe can tell "up but
    unhealthy" from "down".
    """
    dispatcher = getattr(request.app.state, "dispatcher", None)
    processor_state = dispatcher.state if dispatcher is not None else DispatcherState.STOPPED

    status = "ok"
    counts: dict[str, int] = {}
    try:
        counts = {s.value: n for s, n in (await event_store.count_by_status(db)).items()}
    except SQLAlchemyError as exc:
        logger.warning("⚠️ Health check could not query events: %s", exc)
        await db.rollback()
        status = "degraded"

    return envelope(
        request,
        HealthResponse(
            status=status,
            service=settings.app_name,
            version=settings.app_version,
            processor=processor_state.value,
            events=counts,
        ),
    )
