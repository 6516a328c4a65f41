# src/db/job_repo.py — v1
"""Typed queries over the ``jobs`` table (one row per report id)."""

from __future__ import annotations

import json
from typing import Any

from manuscript_pipeline.core.clock import Clock, isoformat
from manuscript_pipeline.core.models import Job
from manuscript_pipeline.db.database import BaseDatabase, Statement

_COLUMNS = (
    "report_id, manuscript_id, user_id, pipeline, genre, style_guide, kinds, attempt, "
    "parent_report_id, state, prior_manuscript_state, total_cost_usd, last_error, "
    "created_at, updated_at"
)


def _row_to_job(row: dict[str, Any]) -> Job:
    data = dict(row)
    data["kinds"] = json.loads(data["kinds"]) if data.get("kinds") else None
    return Job.model_validate(data)


class JobRepository:
    """Job rows; at most one ``active`` row per manuscript."""

    def __init__(self, db: BaseDatabase, clock: Clock) -> None:
        self._db = db
        self._clock = clock

    async def insert(self, job: Job) -> None:
        await self._db.prepare(
            f"INSERT INTO jobs ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
        ).bind(
            job.report_id,
            job.manuscript_id,
            job.user_id,
            job.pipeline,
            job.genre,
            job.style_guide,
            json.dumps(job.kinds) if job.kinds is not None else None,
            job.attempt,
            job.parent_report_id,
            job.state,
            job.prior_manuscript_state,
            job.total_cost_usd,
            job.last_error,
            isoformat(job.created_at),
            isoformat(job.updated_at),
        ).run()

    async def get(self, report_id: str) -> Job | None:
        row = await self._db.prepare(
            f"SELECT {_COLUMNS} FROM jobs WHERE report_id = ?"
        ).bind(report_id).first()
        return _row_to_job(row) if row else None

    async def active_for_manuscript(self, manuscript_id: str) -> Job | None:
        row = await self._db.prepare(
            f"SELECT {_COLUMNS} FROM jobs WHERE manuscript_id = ? AND state = 'active'"
        ).bind(manuscript_id).first()
        return _row_to_job(row) if row else None

    async def history(self, manuscript_id: str) -> list[Job]:
        rows = await self._db.prepare(
            f"SELECT {_COLUMNS} FROM jobs WHERE manuscript_id = ? ORDER BY created_at ASC"
        ).bind(manuscript_id).all()
        return [_row_to_job(r) for r in rows]

    async def record_attempt(self, report_id: str, attempt: int) -> None:
        await self._db.prepare(
            "UPDATE jobs SET attempt = ?, updated_at = ? WHERE report_id = ? AND attempt < ?"
        ).bind(attempt, isoformat(self._clock.now()), report_id, attempt).run()

    async def record_error(self, report_id: str, error: str) -> None:
        await self._db.prepare(
            "UPDATE jobs SET last_error = ?, updated_at = ? WHERE report_id = ?"
        ).bind(error, isoformat(self._clock.now()), report_id).run()

    def finish_statement(
        self,
        report_id: str,
        state: str,
        total_cost_usd: float | None = None,
        last_error: str | None = None,
    ) -> Statement:
        """UPDATE moving an active job to a terminal row state.

        Only active rows change, so finishing twice is a no-op.
        """
        return self._db.prepare(
            "UPDATE jobs SET state = ?, total_cost_usd = COALESCE(?, total_cost_usd), "
            "last_error = COALESCE(?, last_error), updated_at = ? "
            "WHERE report_id = ? AND state = 'active'"
        ).bind(state, total_cost_usd, last_error, isoformat(self._clock.now()), report_id)

    async def finish(
        self,
        report_id: str,
        state: str,
        total_cost_usd: float | None = None,
        last_error: str | None = None,
    ) -> bool:
        result = await self.finish_statement(report_id, state, total_cost_usd, last_error).run()
        return result.changes > 0
