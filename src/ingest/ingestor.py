# src/ingest/ingestor.py — v1
"""Upload admission: validate, store the raw bytes, create the manuscript, queue analysis.

Upload algorithm:
    1. Quota check (QuotaExceeded carries the plan snapshot).
    2. Validation of size, type and page count (BadFile).
    3. Hash, word count, ids, advisory duplicate lookup.
    4. Raw bytes to the object store; failure aborts the upload.
    5. Manuscript row (draft), then status, report-id record, job row, enqueue.
    6. Audit entry (advisory).
    7. draft -> queued.

Steps 1 and 2 have no side effects, so a rejected upload leaves nothing
behind.
"""

from __future__ import annotations

import hashlib
import logging

from manuscript_pipeline.core.clock import Clock, isoformat
from manuscript_pipeline.core.errors import BadFile, QueueUnavailable, QuotaExceeded, Unauthorized
from manuscript_pipeline.core.ids import filename_stem, new_manuscript_id, new_report_id
from manuscript_pipeline.core.models import Manuscript, UploadResult
from manuscript_pipeline.core.state_machine import ManuscriptStateMachine
from manuscript_pipeline.db.audit_repo import AuditLog
from manuscript_pipeline.db.manuscript_repo import ManuscriptRepository
from manuscript_pipeline.db.usage_repo import UsageRepository
from manuscript_pipeline.extraction.extractor_factory import extract_manuscript
from manuscript_pipeline.ingest.file_validation import validate_upload
from manuscript_pipeline.ingest.submitter import JobSubmitter
from manuscript_pipeline.storage.base_object_store import BaseObjectStore
from manuscript_pipeline.storage.layout import raw_manuscript_key

logger = logging.getLogger(__name__)


class Ingestor:
    """Admits uploads and enqueues their first analysis job."""

    def __init__(
        self,
        objects: BaseObjectStore,
        manuscripts: ManuscriptRepository,
        usage: UsageRepository,
        audit: AuditLog,
        state_machine: ManuscriptStateMachine,
        submitter: JobSubmitter,
        clock: Clock,
        max_file_bytes: int,
        max_pages: int,
        default_genre: str = "general",
        default_style_guide: str = "chicago",
    ) -> None:
        self._objects = objects
        self._manuscripts = manuscripts
        self._usage = usage
        self._audit = audit
        self._state = state_machine
        self._submitter = submitter
        self._clock = clock
        self._max_file_bytes = max_file_bytes
        self._max_pages = max_pages
        self._default_genre = default_genre
        self._default_style_guide = default_style_guide

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
        """Admit one manuscript upload.

        Raises:
            Unauthorized: No user id.
            QuotaExceeded: Plan limit reached for the current period.
            BadFile: Size, type or page-count violation.
            ObjectStoreUnavailable: Raw write failed.
            QueueUnavailable: Enqueue failed after the manuscript was created.
        """
        if not user_id:
            raise Unauthorized("Authentication required")

        quota = await self._usage.quota(user_id)
        if quota.exhausted:
            logger.info(
                "Upload rejected for %s: %d/%d used on %s plan",
                user_id, quota.used_this_period, quota.plan_limit, quota.plan_type,
            )
            raise QuotaExceeded(quota.plan_type, quota.used_this_period, quota.plan_limit)

        validated = validate_upload(file_bytes, declared_type, self._max_file_bytes, self._max_pages)
        word_count = await self._count_words(file_bytes, validated.file_type)

        file_hash = hashlib.sha256(file_bytes).hexdigest()
        manuscript_id = new_manuscript_id()
        report_id = new_report_id()
        duplicate_of = await self._manuscripts.find_duplicate(user_id, file_hash)
        if duplicate_of:
            logger.info("Upload %s duplicates manuscript %s", manuscript_id, duplicate_of)

        now = self._clock.now()
        storage_key = raw_manuscript_key(user_id, manuscript_id, now, filename)
        await self._objects.put(
            storage_key,
            file_bytes,
            metadata={
                "userId": user_id,
                "manuscriptId": manuscript_id,
                "reportId": report_id,
                "originalName": filename,
                "uploadedAt": isoformat(now),
            },
        )

        metadata: dict[str, object] = {"report_id": report_id, "file_size": validated.size}
        if validated.page_count is not None:
            metadata["page_count"] = validated.page_count
        if duplicate_of:
            metadata["duplicate_of"] = duplicate_of

        manuscript = Manuscript(
            id=manuscript_id,
            user_id=user_id,
            title=(title or "").strip() or filename_stem(filename),
            genre=genre or self._default_genre,
            word_count=word_count,
            original_filename=filename,
            file_hash=file_hash,
            storage_key=storage_key,
            file_type=validated.file_type,
            status="draft",
            metadata=metadata,
            uploaded_at=now,
            updated_at=now,
        )
        await self._manuscripts.insert(manuscript)

        try:
            await self._submitter.submit(
                manuscript,
                pipeline="analysis",
                style_guide=style_guide or self._default_style_guide,
                report_id=report_id,
            )
        except QueueUnavailable:
            await self._state.transition(manuscript_id, "failed", expected="draft")
            raise

        await self._audit.record(
            "upload",
            "manuscript",
            manuscript_id,
            user_id=user_id,
            metadata={"reportId": report_id, "fileType": validated.file_type, "size": validated.size},
        )

        await self._state.transition(manuscript_id, "queued", expected="draft")
        logger.info("Uploaded manuscript %s (%d words) as job %s", manuscript_id, word_count, report_id)
        return UploadResult(manuscript_id=manuscript_id, report_id=report_id, duplicate_of=duplicate_of)

    async def _count_words(self, content: bytes, file_type: str) -> int:
        """Whitespace word count of the decoded text; 0 for legacy .doc."""
        if file_type == "doc":
            return 0
        try:
            result = await extract_manuscript(content, file_type)
        except BadFile:
            raise
        except Exception as e:
            raise BadFile(f"The {file_type} file could not be decoded") from e
        return result.word_count
