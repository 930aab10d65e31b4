"""Background event processing."""
from __future__ import annotations

from rockets.worker.dispatcher import Dispatcher, DispatcherConfig, DispatcherState, TickResult

__all__ = ["Dispatcher", "DispatcherConfig", "DispatcherState", "TickResult"]
