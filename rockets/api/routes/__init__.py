"""API route modules.

No business logic lives here: routes decode requests, call
``rockets.services.rockets`` and wrap the result in ``APIResponse``.
"""
from __future__ import annotations

from rockets.api.routes import events, health, messages, rockets

__all__ = ["events", "health", "messages", "rockets"]
