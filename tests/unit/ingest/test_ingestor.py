# tests/unit/ingest/test_ingestor.py — v1
"""Tests for ingest/ingestor.py and ingest/submitter.py."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from manuscript_pipeline.core.errors import BadFile, QueueUnavailable, QuotaExceeded, Unauthorized
from manuscript_pipeline.core.models import UsageEvent
from manuscript_pipeline.db.usage_repo import calendar_month
from manuscript_pipeline.extraction.file_type import OLE2_MAGIC


async def _use_credits(container, user_id: str, count: int) -> None:
    start, end = calendar_month(container.clock.now())
    for n in range(count):
        event = UsageEvent(
            user_id=user_id,
            manuscript_id=f"old-{n}",
            report_id=f"old{n:05d}",
            analysis_type="full",
            billing_period_start=start,
            billing_period_end=end,
            timestamp=container.clock.now(),
        )
        await container.usage.record_usage_statement(event).run()


class TestUpload:
    @pytest.mark.asyncio
    async def test_upload_creates_queued_manuscript(self, container, manuscript_text):
        result = await container.ingestor.upload("user-1", manuscript_text, "txt", "the-storm.txt")

        manuscript = await container.manuscripts.get(result.manuscript_id)
        assert manuscript.status == "queued"
        assert manuscript.title == "the-storm"
        assert manuscript.word_count > 1000
        assert manuscript.metadata["report_id"] == result.report_id
        assert await container.objects.get(manuscript.storage_key) == manuscript_text

        job = await container.jobs.get(result.report_id)
        assert job.pipeline == "analysis"
        assert job.prior_manuscript_state == "draft"
        assert (await container.status.get(result.report_id)).state == "queued"
        assert await container.report_index.get(result.report_id) == manuscript.storage_key
        assert await container.queue.depth("analysis") == 1
        assert [e["action"] for e in await container.audit.entries("manuscript", manuscript.id)] == ["upload"]

    @pytest.mark.asyncio
    async def test_duplicate_content_is_flagged(self, container, manuscript_text):
        first = await container.ingestor.upload("user-1", manuscript_text, "txt", "a.txt")
        second = await container.ingestor.upload("user-1", manuscript_text, "txt", "b.txt")
        other_user = await container.ingestor.upload("user-2", manuscript_text, "txt", "a.txt")

        assert second.duplicate_of == first.manuscript_id
        assert other_user.duplicate_of is None

    @pytest.mark.asyncio
    async def test_title_and_genre_override(self, container, manuscript_text):
        result = await container.ingestor.upload(
            "user-1", manuscript_text, "txt", "draft.txt", title="  The Storm ", genre="thriller"
        )
        manuscript = await container.manuscripts.get(result.manuscript_id)
        assert manuscript.title == "The Storm"
        assert manuscript.genre == "thriller"

    @pytest.mark.asyncio
    async def test_legacy_doc_accepted_without_word_count(self, container):
        result = await container.ingestor.upload("user-1", OLE2_MAGIC + b"\x00" * 512, "doc", "old.doc")
        assert (await container.manuscripts.get(result.manuscript_id)).word_count == 0

    @pytest.mark.asyncio
    async def test_anonymous_rejected(self, container, manuscript_text):
        with pytest.raises(Unauthorized):
            await container.ingestor.upload("", manuscript_text, "txt", "a.txt")


class TestAdmissionLeavesNothingBehind:
    @pytest.mark.asyncio
    async def test_quota_exceeded(self, container, manuscript_text):
        await _use_credits(container, "user-1", 5)

        with pytest.raises(QuotaExceeded) as exc:
            await container.ingestor.upload("user-1", manuscript_text, "txt", "a.txt")

        assert exc.value.plan_type == "free"
        assert (exc.value.used, exc.value.limit) == (5, 5)
        assert await container.manuscripts.list_page("user-1") == ([], None)
        assert await container.objects.list("user-1/") == []

    @pytest.mark.asyncio
    async def test_bad_file(self, container):
        with pytest.raises(BadFile):
            await container.ingestor.upload("user-1", b"plain words", "pdf", "a.pdf")
        assert await container.manuscripts.list_page("user-1") == ([], None)
        assert await container.queue.depth("analysis") == 0


class TestQueueFailure:
    @pytest.mark.asyncio
    async def test_enqueue_failure_marks_everything_failed(self, container, manuscript_text):
        container.queue.enqueue = AsyncMock(side_effect=QueueUnavailable("queue down"))

        with pytest.raises(QueueUnavailable):
            await container.ingestor.upload("user-1", manuscript_text, "txt", "a.txt")

        items, _ = await container.manuscripts.list_page("user-1")
        assert [m.status for m in items] == ["failed"]
        job = await container.jobs.get(items[0].metadata["report_id"])
        assert job.state == "failed"
        assert (await container.status.get(job.report_id)).state == "failed"
