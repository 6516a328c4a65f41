# src/ingest/submitter.py — v1
"""Create and enqueue one pipeline job.

Shared by the ingestor (automatic analysis after upload) and the service
facade (manual start, regeneration). Writes happen in a fixed order so a
visible job row always has a reachable status record:

    status (queued, 0) -> report-id record -> job row -> enqueue
"""

from __future__ import annotations

import logging

from manuscript_pipeline.core.clock import Clock
from manuscript_pipeline.core.errors import QueueUnavailable
from manuscript_pipeline.core.ids import new_report_id
from manuscript_pipeline.core.models import Job, Manuscript, QueueMessage
from manuscript_pipeline.db.job_repo import JobRepository
from manuscript_pipeline.queue.base_queue import BaseJobQueue, queue_for_pipeline
from manuscript_pipeline.status.tracker import ReportIndex, StatusTracker

logger = logging.getLogger(__name__)


class JobSubmitter:
    def __init__(
        self,
        jobs: JobRepository,
        status: StatusTracker,
        report_index: ReportIndex,
        queue: BaseJobQueue,
        clock: Clock,
    ) -> None:
        self._jobs = jobs
        self._status = status
        self._report_index = report_index
        self._queue = queue
        self._clock = clock

    async def submit(
        self,
        manuscript: Manuscript,
        pipeline: str,
        style_guide: str,
        kinds: list[str] | None = None,
        parent_report_id: str | None = None,
        report_id: str | None = None,
    ) -> Job:
        """Persist a job and enqueue its message.

        Raises:
            QueueUnavailable: The enqueue failed; status and job are marked failed.
        """
        report_id = report_id or new_report_id()
        now = self._clock.now()

        await self._status.create(report_id, manuscript.id, pipeline)
        await self._report_index.put(report_id, manuscript.storage_key)

        job = Job(
            report_id=report_id,
            manuscript_id=manuscript.id,
            user_id=manuscript.user_id,
            pipeline=pipeline,
            genre=manuscript.genre,
            style_guide=style_guide,
            kinds=kinds,
            parent_report_id=parent_report_id,
            prior_manuscript_state=manuscript.status,
            created_at=now,
            updated_at=now,
        )
        await self._jobs.insert(job)

        message = QueueMessage(
            manuscript_key=manuscript.storage_key,
            report_id=report_id,
            manuscript_id=manuscript.id,
            user_id=manuscript.user_id,
            genre=manuscript.genre,
            style_guide=style_guide,
            pipeline=pipeline,
            kinds=kinds,
        )
        queue_name = queue_for_pipeline(pipeline)
        try:
            await self._queue.enqueue(queue_name, message)
        except QueueUnavailable as e:
            logger.error("Enqueue of job %s failed: %s", report_id, e)
            await self._status.fail(report_id, "Could not queue the job; please retry")
            await self._jobs.finish(report_id, "failed", last_error=str(e))
            raise

        logger.info("Queued %s job %s for manuscript %s on %s", pipeline, report_id, manuscript.id, queue_name)
        return job
