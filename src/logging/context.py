# src/logging/context.py - v2
"""Contextual logging support: attach session_id, run_id, provider, phase to log records.

Context variables are task-local under asyncio, so concurrent sessions
never see each other's values.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_session_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "session_id", default=None
)
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_provider: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "provider", default=None
)
_phase: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "phase", default=None
)


@dataclass
class LogContext:
    """Snapshot of current logging context."""

    session_id: str | None = None
    run_id: str | None = None
    provider: str | None = None
    phase: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        session_id=_session_id.get(),
        run_id=_run_id.get(),
        provider=_provider.get(),
        phase=_phase.get(),
    )


def set_run_context(session_id: str | None, run_id: str, provider: str | None = None) -> None:
    """Set run-level context (called once per orchestrated run)."""
    _session_id.set(session_id)
    _run_id.set(run_id)
    _provider.set(provider)


def set_phase(phase: str | None) -> None:
    """Record the run's current state-machine phase."""
    _phase.set(phase)


def clear_context() -> None:
    """Reset all context variables."""
    _session_id.set(None)
    _run_id.set(None)
    _provider.set(None)
    _phase.set(None)
