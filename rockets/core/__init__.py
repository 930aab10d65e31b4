"""Pure domain logic: event variants, rocket state, and the reducer."""
from __future__ import annotations

from rockets.core.reducer import reduce
from rockets.core.state import RocketState, TerminalFailure

__all__ = ["reduce", "RocketState", "TerminalFailure"]
