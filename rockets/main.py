"""
Rockets API

FastAPI application that ingests rocket telemetry and serves reduced rocket
state.

Entry point: ``uvicorn rockets.main:app --port 8088``

Architecture:
- ``POST /messages`` only persists a pending event record.
- ``lifespan`` starts the ``Dispatcher`` worker pool that drains pending
  records into rocket state, and stops it (before closing the database) on
  shutdown.
- ``GET /rockets``, ``GET /rockets/{id}``, ``GET /events/{id}`` are
  read-only queries.
"""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from rockets.api.envelope import RequestIdMiddleware, error_response
from rockets.api.routes import events, health, messages, rockets
from rockets.config import settings
from rockets.db import close_db, init_db
from rockets.errors import SerializationError, StoreError
from rockets.worker.dispatcher import Dispatcher, DispatcherConfig

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.DEBUG),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler."""
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)

    try:
        await init_db()
    except Exception as e:
        logger.error("Failed to initialize database: %s", e)
        raise

    dispatcher = Dispatcher(DispatcherConfig.from_settings(settings))
    app.state.dispatcher = dispatcher
    await dispatcher.start()

    try:
        yield
    finally:
        # Workers first: they still need the database to finish their tick.
        logger.info("Shutting down...")
        await dispatcher.stop()
        await close_db()


app = FastAPI(
    title="Rockets Telemetry API",
    version=settings.app_version,
    description=(
        "Ingests unordered, at-least-once rocket telemetry and serves the "
        "current state of each rocket.\n\n"
        "Every response is wrapped as `{requestId, data, error}`; send a "
        "`Request-Id` header to choose the id."
    ),
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(RequestIdMiddleware)


@app.exception_handler(StarletteHTTPException)
async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> Response:
    return error_response(request, exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def _handle_validation_error(request: Request, exc: RequestValidationError) -> Response:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return error_response(request, 422, "; ".join(parts) or "invalid request")


@app.exception_handler(SerializationError)
async def _handle_serialization_error(request: Request, exc: SerializationError) -> Response:
    return error_response(request, 422, str(exc))


@app.exception_handler(StoreError)
async def _handle_store_error(request: Request, exc: StoreError) -> Response:
    logger.error("❌ Store error on %s %s: %s", request.method, request.url.path, exc)
    return error_response(request, 503, "storage unavailable")


app.include_router(health.router)
app.include_router(messages.router)
app.include_router(rockets.router)
app.include_router(events.router)
