# src/status/tracker.py — v2
"""Job status records (``status:{reportId}``) and the report-id index.

JobStatus is the externally observable state of a job. Transitions:

    queued -> running -> (stage_done)* -> complete
    queued | running -> cancelled
    queued | running -> failed

``stage_done`` is recorded in the history as a labelled self-loop of
``running`` that bumps the current stage and progress. Progress never
decreases and terminal states never change: writes against a terminal
record are ignored and logged.

The record is read, changed and written back, which is not atomic across
processes. Cancellation therefore also sets ``cancel:{reportId}``, a key
no other write touches: a non-terminal record with that flag reads as
cancelled and the next write persists the cancellation, so an API cancel
is never lost to a concurrent worker update.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from manuscript_pipeline.cache.base_cache_store import BaseCacheStore
from manuscript_pipeline.cache.keys import cancel_key, report_id_key, status_key
from manuscript_pipeline.core.clock import Clock
from manuscript_pipeline.core.errors import NotFound
from manuscript_pipeline.core.models import JobStatus, StatusTransition

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50


class StatusTracker:
    """Reads and writes JobStatus records with a fixed retention."""

    def __init__(self, store: BaseCacheStore, clock: Clock, ttl_seconds: int) -> None:
        self._store = store
        self._clock = clock
        self._ttl = ttl_seconds
        self._lock = asyncio.Lock()

    async def get(self, report_id: str) -> JobStatus | None:
        status = await self._load(report_id)
        if status is not None and not status.terminal and await self._cancel_requested(report_id):
            _apply_cancel(status, status.timestamp)
        return status

    async def _load(self, report_id: str) -> JobStatus | None:
        data = await self._store.get(status_key(report_id))
        return JobStatus.model_validate(data) if data else None

    async def _cancel_requested(self, report_id: str) -> bool:
        return bool(await self._store.get(cancel_key(report_id)))

    async def create(self, report_id: str, manuscript_id: str, pipeline: str) -> JobStatus:
        now = self._clock.now()
        status = JobStatus(
            report_id=report_id,
            manuscript_id=manuscript_id,
            pipeline=pipeline,
            state="queued",
            progress=0,
            message="Queued",
            timestamp=now,
            history=[StatusTransition(state="queued", progress=0, message="Queued", timestamp=now)],
        )
        async with self._lock:
            await self._save(status)
        return status

    async def ensure(self, report_id: str, manuscript_id: str, pipeline: str) -> JobStatus:
        """Existing record, or a fresh queued one if it expired or was never written."""
        status = await self.get(report_id)
        if status is None:
            logger.warning("Status %s missing, recreating", report_id)
            status = await self.create(report_id, manuscript_id, pipeline)
        return status

    async def start(self, report_id: str, stage: str | None, attempt: int) -> JobStatus:
        def apply(s: JobStatus, now: datetime) -> None:
            s.state = "running"
            s.current_stage = stage
            s.attempt = attempt
            s.message = f"Running {stage}" if stage else "Running"
            s.history.append(StatusTransition(
                state="running", stage=stage, progress=s.progress, message=s.message, timestamp=now,
            ))

        return await self._update(report_id, apply)

    async def stage_done(
        self,
        report_id: str,
        stage: str,
        next_stage: str | None,
        progress: int,
        message: str = "",
    ) -> JobStatus:
        def apply(s: JobStatus, now: datetime) -> None:
            s.progress = max(s.progress, min(progress, 100))
            s.current_stage = next_stage
            s.message = message or f"{stage} complete"
            s.history.append(StatusTransition(
                state="stage_done", stage=stage, progress=s.progress, message=s.message, timestamp=now,
            ))

        return await self._update(report_id, apply)

    async def note(self, report_id: str, message: str, error: str | None = None) -> JobStatus:
        """Update the message without changing state (retriable failures)."""
        def apply(s: JobStatus, now: datetime) -> None:
            s.message = message
            if error is not None:
                s.error = error

        return await self._update(report_id, apply)

    async def complete(self, report_id: str, message: str = "Complete") -> JobStatus:
        return await self._finish(report_id, "complete", message, progress=100)

    async def fail(self, report_id: str, error: str) -> JobStatus:
        return await self._finish(report_id, "failed", error, error=error)

    async def cancel(self, report_id: str) -> JobStatus:
        """Mark cancelled. Permitted from any non-terminal state."""
        status = await self._load(report_id)
        if status is None:
            raise NotFound(f"Status for job {report_id} not found")
        if status.terminal:
            logger.info("Status %s is %s; ignoring cancel", report_id, status.state)
            return status
        await self._store.set(cancel_key(report_id), True, ttl=self._ttl)
        return await self._update(report_id, _apply_cancel, final=True)

    async def is_cancelled(self, report_id: str) -> bool:
        status = await self.get(report_id)
        return status is not None and status.state == "cancelled"

    async def _finish(
        self,
        report_id: str,
        state: str,
        message: str,
        progress: int | None = None,
        error: str | None = None,
    ) -> JobStatus:
        def apply(s: JobStatus, now: datetime) -> None:
            s.state = state
            s.message = message
            if progress is not None:
                s.progress = max(s.progress, progress)
            if error is not None:
                s.error = error
            s.history.append(StatusTransition(
                state=state, stage=s.current_stage, progress=s.progress, message=message, timestamp=now,
            ))

        return await self._update(report_id, apply, final=True)

    async def _update(
        self,
        report_id: str,
        apply: Callable[[JobStatus, datetime], None],
        final: bool = False,
    ) -> JobStatus:
        """Read, change and save one record.

        A progress write (``final`` False) on a record with a pending cancel
        persists the cancellation instead.
        """
        async with self._lock:
            status = await self._load(report_id)
            if status is None:
                raise NotFound(f"Status for job {report_id} not found")
            if status.terminal:
                logger.info("Status %s is %s; ignoring update", report_id, status.state)
                return status
            if not final and await self._cancel_requested(report_id):
                logger.info("Status %s has a pending cancel; persisting it instead", report_id)
                apply = _apply_cancel
            now = self._clock.now()
            apply(status, now)
            status.timestamp = now
            await self._save(status)
            return status

    async def _save(self, status: JobStatus) -> None:
        status.history = status.history[-HISTORY_LIMIT:]
        await self._store.set(status_key(status.report_id), status.model_dump(mode="json"), ttl=self._ttl)


def _apply_cancel(status: JobStatus, now: datetime) -> None:
    status.state = "cancelled"
    status.message = "Cancelled"
    status.history.append(StatusTransition(
        state="cancelled", stage=status.current_stage, progress=status.progress,
        message="Cancelled", timestamp=now,
    ))


class ReportIndex:
    """``report-id:{reportId}`` -> manuscript storage key."""

    def __init__(self, store: BaseCacheStore, ttl_seconds: int) -> None:
        self._store = store
        self._ttl = ttl_seconds

    async def put(self, report_id: str, manuscript_key: str) -> None:
        await self._store.set(report_id_key(report_id), manuscript_key, ttl=self._ttl)

    async def get(self, report_id: str) -> str | None:
        value = await self._store.get(report_id_key(report_id))
        return str(value) if value is not None else None
