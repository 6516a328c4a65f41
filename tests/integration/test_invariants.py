# tests/integration/test_invariants.py — v1
"""Cross-component invariants checked after real pipeline runs."""

from __future__ import annotations

import json

import pytest

from manuscript_pipeline.core.errors import BadModelOutput
from manuscript_pipeline.core.models import ANALYSIS_KINDS
from manuscript_pipeline.storage.layout import artifact_key


async def _run_analysis(service, container, manuscript_text, filename: str = "storm.txt"):
    upload = await service.upload("user-1", manuscript_text, "txt", filename)
    await container.worker.drain("analysis")
    return upload


class TestUsageEvents:
    @pytest.mark.asyncio
    async def test_one_event_per_successful_job(self, service, container, manuscript_text):
        upload = await _run_analysis(service, container, manuscript_text)
        ticket = await service.request_regeneration("user-1", upload.manuscript_id, ["keywords"])
        await container.worker.drain("assets")

        analysis_events = await container.usage.events_for_report(upload.report_id)
        asset_events = await container.usage.events_for_report(ticket.report_id)
        assert [e.analysis_type for e in analysis_events] == ["full"]
        assert [e.analysis_type for e in asset_events] == ["basic"]
        assert (await service.quota("user-1"))["usedThisPeriod"] == 2

    @pytest.mark.asyncio
    async def test_resumed_job_still_debits_once(self, service, container, scripted_llm, manuscript_text):
        scripted_llm.errors["copy-editing"] = BadModelOutput("model output was not valid JSON")
        upload = await service.upload("user-1", manuscript_text, "txt", "storm.txt")

        assert await container.worker.run_once("analysis") == "retry"
        del scripted_llm.errors["copy-editing"]
        assert await container.worker.run_once("analysis") == "complete"

        assert scripted_llm.calls_for("developmental") == 1
        assert scripted_llm.calls_for("line-editing") == 1
        assert scripted_llm.calls_for("copy-editing") == 2
        assert len(await container.usage.events_for_report(upload.report_id)) == 1


class TestPublishedArtifacts:
    @pytest.mark.asyncio
    async def test_index_row_and_blob_agree(self, service, container, manuscript_text):
        upload = await _run_analysis(service, container, manuscript_text)
        manuscript = await container.manuscripts.get(upload.manuscript_id)

        for record in await container.artifacts.list(manuscript.id):
            assert record.storage_key == artifact_key(manuscript.storage_key, record.kind)
            assert record.cost_usd > 0
            assert record.created_at is not None
            blob = await container.objects.get(record.storage_key)
            assert blob is not None
            assert len(blob) == record.size_bytes
            fetched = await service.fetch_artifact("user-1", manuscript.id, record.kind)
            assert json.loads(fetched) == json.loads(blob)

    @pytest.mark.asyncio
    async def test_job_total_matches_cost_rows(self, service, container, manuscript_text):
        upload = await _run_analysis(service, container, manuscript_text)
        job = await container.jobs.get(upload.report_id)
        assert job.total_cost_usd == pytest.approx(await container.costs.total_for_report(upload.report_id))
        assert job.total_cost_usd > 0


class TestManuscriptState:
    @pytest.mark.asyncio
    async def test_analyzed_implies_editorial_artifacts(self, service, container, manuscript_text):
        upload = await _run_analysis(service, container, manuscript_text)
        manuscript = await container.manuscripts.get(upload.manuscript_id)
        assert manuscript.status == "analyzed"
        present = {r.kind for r in await container.artifacts.list(manuscript.id)}
        assert set(ANALYSIS_KINDS) <= present

    @pytest.mark.asyncio
    async def test_final_failure_restores_prior_state(self, service, container, scripted_llm, manuscript_text):
        scripted_llm.errors["developmental"] = BadModelOutput("model output was not valid JSON")
        upload = await service.upload("user-1", manuscript_text, "txt", "storm.txt")

        outcomes = await container.worker.drain("analysis")

        assert outcomes[-1] == "failed"
        assert (await container.manuscripts.get(upload.manuscript_id)).status == "draft"
        assert await container.artifacts.list(upload.manuscript_id) == []


class TestStatusSequence:
    @pytest.mark.asyncio
    async def test_progress_monotonic_and_terminal_final(self, service, container, manuscript_text):
        upload = await _run_analysis(service, container, manuscript_text)
        status = await container.status.get(upload.report_id)

        progress = [h.progress for h in status.history]
        assert progress == sorted(progress)

        after = await container.status.stage_done(upload.report_id, "developmental", None, 10)
        assert after.state == "complete"
        assert after.progress == 100
        assert (await container.status.fail(upload.report_id, "late failure")).state == "complete"


class TestCacheInvalidation:
    @pytest.mark.asyncio
    async def test_reads_follow_mutations(self, service, container, manuscript_text):
        upload = await service.upload("user-1", manuscript_text, "txt", "storm.txt")
        assert (await service.get_manuscript("user-1", upload.manuscript_id))["status"] == "queued"
        assert (await service.analysis_status("user-1", upload.manuscript_id))["artifacts"] == []

        await container.worker.drain("analysis")

        assert (await service.get_manuscript("user-1", upload.manuscript_id))["status"] == "analyzed"
        view = await service.analysis_status("user-1", upload.manuscript_id)
        assert view["artifacts"] == sorted(ANALYSIS_KINDS)
        assert view["job"]["state"] == "complete"

    @pytest.mark.asyncio
    async def test_listing_follows_upload_and_edit(self, service, container, manuscript_text):
        first = await service.upload("user-1", manuscript_text, "txt", "one.txt")
        assert len((await service.list_manuscripts("user-1"))["items"]) == 1
        await service.upload("user-1", manuscript_text + b"\nEpilogue", "txt", "two.txt")
        assert len((await service.list_manuscripts("user-1"))["items"]) == 2

        await service.record_human_edit("user-1", first.manuscript_id, "1", {"text": "v1"})
        assert "human-edit:1" in [a["kind"] for a in await service.list_artifacts("user-1", first.manuscript_id)]
        await service.record_human_edit("user-1", first.manuscript_id, "1", {"text": "v2"})
        body = await service.fetch_artifact("user-1", first.manuscript_id, "human-edit:1")
        assert json.loads(body) == {"text": "v2"}
