# src/api/facade.py — v2
"""Service facade: the single entry point the HTTP layer calls.

Usage:
    container = build_container(load_settings())
    await container.start()
    service = ManuscriptService(container)
    result = await service.upload(user_id, data, "txt", "novel.txt")

Every method raises typed domain errors; ``api.errors`` maps them to
status codes and bodies.
"""

from __future__ import annotations

import logging
from typing import Any

from manuscript_pipeline.api.models import JobTicket, QuotaView
from manuscript_pipeline.core.clock import isoformat
from manuscript_pipeline.core.errors import (
    InvalidRequest,
    JobConflict,
    NotFound,
    PreconditionMissing,
    QuotaExceeded,
    Unauthorized,
)
from manuscript_pipeline.core.models import (
    HUMAN_EDIT_PREFIX,
    PIPELINE_KINDS,
    Manuscript,
    UploadResult,
    is_valid_kind,
    pipeline_for_kinds,
)
from manuscript_pipeline.container import Container

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class ManuscriptService:
    """Facade over the container for one deployment."""

    def __init__(self, container: Container) -> None:
        self._c = container

    # --- ingestion ---

    async def upload(
        self,
        user_id: str,
        file_bytes: bytes,
        declared_type: str,
        filename: str,
        title: str | None = None,
        genre: str | None = None,
        style_guide: str | None = None,
    ) -> UploadResult:
        result = await self._c.ingestor.upload(
            user_id, file_bytes, declared_type, filename,
            title=title, genre=genre, style_guide=style_guide,
        )
        await self._c.artifact_cache.invalidate(user_id, result.manuscript_id, kinds=[])
        return result

    async def start_analysis(
        self, user_id: str, manuscript_id: str, style_guide: str | None = None
    ) -> JobTicket:
        """Queue the editorial analysis.

        Idempotent: an active analysis job is returned instead of a new one.

        Raises:
            NotFound: Unknown manuscript or not owned by the user.
            JobConflict: A different pipeline is active for the manuscript.
            QuotaExceeded: Plan limit reached.
        """
        manuscript = await self._owned(user_id, manuscript_id)
        active = await self._active_ticket(manuscript, "analysis")
        if active is not None:
            return active
        await self._check_quota(user_id)

        job = await self._c.submitter.submit(
            manuscript,
            pipeline="analysis",
            style_guide=style_guide or self._c.settings.default_style_guide,
            parent_report_id=manuscript.metadata.get("report_id"),
        )
        await self._c.state_machine.transition(manuscript.id, "queued")
        await self._c.audit.record(
            "start_analysis", "manuscript", manuscript.id, user_id=user_id,
            metadata={"reportId": job.report_id},
        )
        await self._c.artifact_cache.invalidate(user_id, manuscript.id, kinds=[])
        return JobTicket(report_id=job.report_id, manuscript_id=manuscript.id, pipeline="analysis")

    async def request_regeneration(
        self,
        user_id: str,
        manuscript_id: str,
        kinds: list[str] | None = None,
        style_guide: str | None = None,
    ) -> JobTicket:
        """Queue a job that regenerates ``kinds`` (default: every asset).

        Raises:
            InvalidRequest: Unknown kinds, or editorial and asset kinds mixed.
            PreconditionMissing: The developmental artifact does not exist.
            JobConflict: A different pipeline is active for the manuscript.
            QuotaExceeded: Plan limit reached.
        """
        manuscript = await self._owned(user_id, manuscript_id)
        pipeline = self._pipeline_for(kinds)

        if await self._c.artifacts.get(manuscript.id, "developmental") is None:
            raise PreconditionMissing(
                "Regeneration requires the developmental analysis to exist", missing=["developmental"]
            )
        active = await self._active_ticket(manuscript, pipeline)
        if active is not None:
            return active
        await self._check_quota(user_id)

        job = await self._c.submitter.submit(
            manuscript,
            pipeline=pipeline,
            style_guide=style_guide or self._c.settings.default_style_guide,
            kinds=list(kinds) if kinds else None,
            parent_report_id=manuscript.metadata.get("report_id"),
        )
        if pipeline == "analysis":
            await self._c.state_machine.transition(manuscript.id, "queued")
        await self._c.audit.record(
            "regenerate", "manuscript", manuscript.id, user_id=user_id,
            metadata={"reportId": job.report_id, "pipeline": pipeline, "kinds": kinds},
        )
        await self._c.artifact_cache.invalidate(user_id, manuscript.id, kinds=[])
        return JobTicket(report_id=job.report_id, manuscript_id=manuscript.id, pipeline=pipeline)

    # --- job status ---

    async def get_status(self, report_id: str) -> dict[str, Any]:
        status = await self._c.status.get(report_id)
        if status is None:
            raise NotFound(f"No job with report id {report_id}")
        return status.public_view()

    async def cancel(self, user_id: str, report_id: str) -> dict[str, Any]:
        """Request cancellation.

        A job that has not started is finalized here; a running one stops
        at the next stage boundary and is finalized by its worker.

        Raises:
            NotFound: Unknown report id or not owned by the user.
            JobConflict: The job already completed or failed.
        """
        job = await self._c.jobs.get(report_id)
        if job is None or job.user_id != user_id:
            raise NotFound(f"No job with report id {report_id}")
        status = await self._c.status.ensure(report_id, job.manuscript_id, job.pipeline)
        if status.state == "cancelled":
            return status.public_view()
        if status.terminal:
            raise JobConflict(f"Job {report_id} already {status.state}")

        was_queued = status.state == "queued"
        status = await self._c.status.cancel(report_id)
        if was_queued:
            await self._c.jobs.finish(report_id, "cancelled")
            if job.prior_manuscript_state:
                await self._c.state_machine.transition(job.manuscript_id, job.prior_manuscript_state)
        await self._c.audit.record("cancel", "job", report_id, user_id=user_id)
        await self._c.artifact_cache.invalidate(user_id, job.manuscript_id, kinds=[])
        logger.info("Cancellation requested for job %s", report_id)
        return status.public_view()

    # --- artifacts ---

    async def list_artifacts(self, user_id: str, manuscript_id: str) -> list[dict[str, Any]]:
        await self._owned(user_id, manuscript_id)
        records = await self._c.artifact_cache.list_kinds(user_id, manuscript_id)
        return [records[kind].summary() for kind in sorted(records)]

    async def fetch_artifact(self, user_id: str, manuscript_id: str, kind: str) -> bytes:
        if not is_valid_kind(kind):
            raise InvalidRequest(f"Unknown artifact kind {kind!r}")
        body = await self._c.artifact_cache.get_artifact(user_id, manuscript_id, kind)
        if body is None:
            raise NotFound(f"No {kind} artifact for manuscript {manuscript_id}")
        return body

    async def record_human_edit(
        self, user_id: str, manuscript_id: str, chapter: str, payload: Any
    ) -> dict[str, Any]:
        """Publish an author's edit of one chapter as ``human-edit:{chapter}``."""
        manuscript = await self._owned(user_id, manuscript_id)
        kind = f"{HUMAN_EDIT_PREFIX}{chapter.strip()}"
        if not is_valid_kind(kind):
            raise InvalidRequest("A chapter name is required for a human edit")
        record = await self._c.publisher.publish(
            user_id, manuscript.id, manuscript.storage_key, kind, payload
        )
        await self._c.audit.record(
            "human_edit", "manuscript", manuscript.id, user_id=user_id,
            metadata={"kind": kind, "version": record.version},
        )
        return record.summary()

    # --- listings ---

    async def get_manuscript(self, user_id: str, manuscript_id: str) -> dict[str, Any]:
        if not user_id:
            raise Unauthorized("Authentication required")
        manuscript = await self._c.artifact_cache.manuscript(user_id, manuscript_id)
        if manuscript is None:
            raise NotFound(f"Manuscript {manuscript_id} not found")
        return manuscript.model_dump(mode="json")

    async def analysis_status(self, user_id: str, manuscript_id: str) -> dict[str, Any]:
        view = await self._c.artifact_cache.analysis_status(user_id, manuscript_id)
        if view is None:
            raise NotFound(f"Manuscript {manuscript_id} not found")
        return view

    async def list_manuscripts(
        self,
        user_id: str,
        status: str | None = None,
        genre: str | None = None,
        cursor: str | None = None,
        limit: int = 20,
    ) -> dict[str, Any]:
        if not user_id:
            raise Unauthorized("Authentication required")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise InvalidRequest(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        return await self._c.artifact_cache.list_manuscripts(user_id, status, genre, cursor, limit)

    async def quota(self, user_id: str) -> dict[str, Any]:
        quota = await self._c.usage.quota(user_id)
        return QuotaView(
            plan_type=quota.plan_type,
            plan_limit=quota.plan_limit,
            used_this_period=quota.used_this_period,
            remaining=max(quota.plan_limit - quota.used_this_period, 0),
            period_start=isoformat(quota.period_start),
            period_end=isoformat(quota.period_end),
        ).to_body()

    # --- helpers ---

    async def _owned(self, user_id: str, manuscript_id: str) -> Manuscript:
        if not user_id:
            raise Unauthorized("Authentication required")
        manuscript = await self._c.manuscripts.get_owned(user_id, manuscript_id)
        if manuscript is None:
            raise NotFound(f"Manuscript {manuscript_id} not found")
        return manuscript

    async def _active_ticket(self, manuscript: Manuscript, pipeline: str) -> JobTicket | None:
        active = await self._c.jobs.active_for_manuscript(manuscript.id)
        if active is None:
            return None
        if active.pipeline != pipeline:
            raise JobConflict(
                f"A {active.pipeline} job ({active.report_id}) is already running for this manuscript"
            )
        return JobTicket(
            report_id=active.report_id,
            manuscript_id=manuscript.id,
            pipeline=pipeline,
            status="active",
            reused=True,
        )

    async def _check_quota(self, user_id: str) -> None:
        quota = await self._c.usage.quota(user_id)
        if quota.exhausted:
            raise QuotaExceeded(quota.plan_type, quota.used_this_period, quota.plan_limit)

    @staticmethod
    def _pipeline_for(kinds: list[str] | None) -> str:
        if not kinds:
            return "assets"
        unknown = [k for k in kinds if not is_valid_kind(k) or k.startswith(HUMAN_EDIT_PREFIX)]
        if unknown:
            raise InvalidRequest(f"Cannot regenerate {', '.join(unknown)}")
        pipeline = pipeline_for_kinds(kinds)
        if not all(k in PIPELINE_KINDS[pipeline] for k in kinds):
            raise InvalidRequest("Editorial and asset kinds must be regenerated separately")
        return pipeline
