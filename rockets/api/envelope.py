"""Request ids and the response envelope.

Every request carries a request id: the inbound ``Request-Id`` header when
the client sent one, otherwise a fresh UUID.  It is stored on
``request.state``, echoed in the ``Request-Id`` response header, and copied
into the ``requestId`` field of every ``APIResponse``.
"""
from __future__ import annotations

import uuid
from typing import Awaitable, Callable, TypeVar

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from rockets.models.rockets import APIResponse

REQUEST_ID_HEADER = "Request-Id"

T = TypeVar("T")


def generate_request_id() -> str:
    return str(uuid.uuid4())


def get_request_id(request: Request) -> str:
    """Return the request id assigned by ``RequestIdMiddleware``."""
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        request.state.request_id = request_id
    return str(request_id)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request id to every request and echo it on the response."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def envelope(request: Request, data: T) -> APIResponse[T]:
    """Wrap a successful result."""
    return APIResponse(request_id=get_request_id(request), data=data)


def error_response(request: Request, status_code: int, message: str) -> JSONResponse:
    """Build an enveloped error response."""
    body = APIResponse(request_id=get_request_id(request), error=message)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, mode="json", exclude_none=True),
        headers={REQUEST_ID_HEADER: get_request_id(request)},
    )
