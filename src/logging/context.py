# src/logging/context.py - v1
"""Contextual logging support: attach batch index, batch range and phase to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per batch by the scheduler.
_batch_index: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "batch_index", default=None
)
_batch_range: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "batch_range", default=None
)
_phase: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "phase", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    batch_index: int | None = None
    batch_range: str | None = None
    phase: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        batch_index=_batch_index.get(),
        batch_range=_batch_range.get(),
        phase=_phase.get(),
    )


def set_batch_context(batch_index: int, start: int, end: int) -> None:
    """Set batch-level context (called once per scheduler iteration)."""
    _batch_index.set(batch_index)
    _batch_range.set(f"{start}-{end}")


def set_phase(phase: str | None) -> None:
    """Set the scheduler phase (staging, running, done, failed)."""
    _phase.set(phase)


def clear_context() -> None:
    """Reset all context variables."""
    _batch_index.set(None)
    _batch_range.set(None)
    _phase.set(None)
