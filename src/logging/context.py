# src/logging/context.py — v1
"""Contextual logging support: attach manuscript_id, report_id, stage, attempt to log records.

Context variables are task-local under asyncio, so concurrent stages of one
batch each log with their own stage name.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_manuscript_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "manuscript_id", default=None
)
_report_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "report_id", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)
_attempt: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "attempt", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    manuscript_id: str | None = None
    report_id: str | None = None
    stage: str | None = None
    attempt: int | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        manuscript_id=_manuscript_id.get(),
        report_id=_report_id.get(),
        stage=_stage.get(),
        attempt=_attempt.get(),
    )


def set_job_context(manuscript_id: str, report_id: str, attempt: int | None = None) -> None:
    """Set job-level context (called once per delivery)."""
    _manuscript_id.set(manuscript_id)
    _report_id.set(report_id)
    _attempt.set(attempt)


def set_stage_context(stage: str | None) -> None:
    """Set stage-level context (called inside each stage task)."""
    _stage.set(stage)


def clear_context() -> None:
    """Reset all context variables."""
    _manuscript_id.set(None)
    _report_id.set(None)
    _stage.set(None)
    _attempt.set(None)
