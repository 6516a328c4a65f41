# tests/unit/db/test_repositories.py — v1
"""Tests for the relational repositories over in-memory SQLite."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from manuscript_pipeline.core.errors import InvalidRequest
from manuscript_pipeline.core.models import ArtifactRecord, Job, UsageEvent
from manuscript_pipeline.db.artifact_index import ArtifactIndex
from manuscript_pipeline.db.audit_repo import AuditLog
from manuscript_pipeline.db.cost_ledger import CostLedger
from manuscript_pipeline.db.job_repo import JobRepository
from manuscript_pipeline.db.manuscript_repo import ManuscriptRepository, decode_cursor
from manuscript_pipeline.db.usage_repo import UsageRepository, calendar_month
from manuscript_pipeline.tracking.models import StageCost

PLAN_LIMITS = {"free": 5, "pro": 10, "enterprise": 999999}


def _artifact(clock, report_id: str = "rep00001", kind: str = "developmental") -> ArtifactRecord:
    return ArtifactRecord(
        manuscript_id="ms-0001",
        kind=kind,
        report_id=report_id,
        storage_key=f"user-1/ms-0001/key-{kind}.json",
        size_bytes=512,
        cost_usd=0.006,
        input_tokens=1000,
        output_tokens=200,
        model="claude-sonnet-4-20250514",
        created_at=clock.now(),
    )


def _job(clock, report_id: str = "rep00001", **overrides) -> Job:
    values = dict(
        report_id=report_id,
        manuscript_id="ms-0001",
        user_id="user-1",
        pipeline="analysis",
        prior_manuscript_state="draft",
        created_at=clock.now(),
        updated_at=clock.now(),
    )
    values.update(overrides)
    return Job(**values)


def _usage(clock, report_id: str = "rep00001") -> UsageEvent:
    start, end = calendar_month(clock.now())
    return UsageEvent(
        user_id="user-1",
        manuscript_id="ms-0001",
        report_id=report_id,
        analysis_type="full",
        billing_period_start=start,
        billing_period_end=end,
        timestamp=clock.now(),
    )


class TestManuscriptRepository:
    @pytest.mark.asyncio
    async def test_insert_and_get_owned(self, db, clock, make_manuscript):
        repo = ManuscriptRepository(db, clock)
        await repo.insert(make_manuscript(metadata={"source": "upload"}))

        stored = await repo.get_owned("user-1", "ms-0001")
        assert stored.title == "The Storm"
        assert stored.metadata == {"source": "upload"}
        assert await repo.get_owned("user-2", "ms-0001") is None

    @pytest.mark.asyncio
    async def test_find_duplicate_is_per_owner(self, db, clock, make_manuscript):
        repo = ManuscriptRepository(db, clock)
        await repo.insert(make_manuscript())
        assert await repo.find_duplicate("user-1", "a" * 64) == "ms-0001"
        assert await repo.find_duplicate("user-2", "a" * 64) is None

    @pytest.mark.asyncio
    async def test_list_page_cursor_walks_all_rows(self, db, clock, make_manuscript):
        repo = ManuscriptRepository(db, clock)
        for n in range(5):
            await repo.insert(
                make_manuscript(
                    id=f"ms-{n:04d}",
                    storage_key=f"user-1/ms-{n:04d}/storm.txt",
                    uploaded_at=clock.now() + timedelta(minutes=n),
                )
            )

        first, cursor = await repo.list_page("user-1", limit=2)
        assert [m.id for m in first] == ["ms-0004", "ms-0003"]
        second, cursor = await repo.list_page("user-1", cursor=cursor, limit=2)
        assert [m.id for m in second] == ["ms-0002", "ms-0001"]
        third, cursor = await repo.list_page("user-1", cursor=cursor, limit=2)
        assert [m.id for m in third] == ["ms-0000"]
        assert cursor is None

    @pytest.mark.asyncio
    async def test_list_page_filters(self, db, clock, make_manuscript):
        repo = ManuscriptRepository(db, clock)
        await repo.insert(make_manuscript(id="ms-a", genre="thriller", status="analyzed"))
        await repo.insert(make_manuscript(id="ms-b", genre="romance"))

        items, _ = await repo.list_page("user-1", status="analyzed")
        assert [m.id for m in items] == ["ms-a"]
        items, _ = await repo.list_page("user-1", genre="romance")
        assert [m.id for m in items] == ["ms-b"]

    def test_bad_cursor(self):
        with pytest.raises(InvalidRequest, match="Invalid pagination cursor"):
            decode_cursor("not-a-cursor")


class TestJobRepository:
    @pytest.mark.asyncio
    async def test_insert_get_and_active(self, db, clock):
        jobs = JobRepository(db, clock)
        await jobs.insert(_job(clock, kinds=["keywords"], pipeline="assets"))

        job = await jobs.get("rep00001")
        assert job.kinds == ["keywords"]
        assert (await jobs.active_for_manuscript("ms-0001")).report_id == "rep00001"

    @pytest.mark.asyncio
    async def test_finish_only_changes_active_rows(self, db, clock):
        jobs = JobRepository(db, clock)
        await jobs.insert(_job(clock))

        assert await jobs.finish("rep00001", "complete", total_cost_usd=0.02) is True
        assert await jobs.finish("rep00001", "failed", last_error="late") is False

        job = await jobs.get("rep00001")
        assert job.state == "complete"
        assert job.total_cost_usd == pytest.approx(0.02)
        assert job.last_error is None
        assert await jobs.active_for_manuscript("ms-0001") is None

    @pytest.mark.asyncio
    async def test_one_active_job_per_manuscript(self, db, clock):
        jobs = JobRepository(db, clock)
        await jobs.insert(_job(clock))
        with pytest.raises(sqlite3.IntegrityError):
            await jobs.insert(_job(clock, report_id="rep00002"))

    @pytest.mark.asyncio
    async def test_record_attempt_is_monotonic(self, db, clock):
        jobs = JobRepository(db, clock)
        await jobs.insert(_job(clock))
        await jobs.record_attempt("rep00001", 3)
        await jobs.record_attempt("rep00001", 2)
        assert (await jobs.get("rep00001")).attempt == 3


class TestArtifactIndex:
    @pytest.mark.asyncio
    async def test_version_bumps_for_new_job(self, db, clock, make_manuscript):
        await ManuscriptRepository(db, clock).insert(make_manuscript())
        index = ArtifactIndex(db)

        first = await index.upsert_published(_artifact(clock, "rep00001"))
        again = await index.upsert_published(_artifact(clock, "rep00001"))
        second = await index.upsert_published(_artifact(clock, "rep00002"))

        assert first.version == 1
        assert again.version == 1
        assert second.version == 2
        assert second.report_id == "rep00002"

    @pytest.mark.asyncio
    async def test_published_by(self, db, clock, make_manuscript):
        await ManuscriptRepository(db, clock).insert(make_manuscript())
        index = ArtifactIndex(db)
        await index.upsert_published(_artifact(clock, "rep00001", "keywords"))
        await index.upsert_published(_artifact(clock, "rep00001", "categories"))
        await index.upsert_published(_artifact(clock, "rep00002", "author-bio"))

        assert await index.published_by("ms-0001", "rep00001") == {"keywords", "categories"}
        assert [r.kind for r in await index.list("ms-0001")] == ["author-bio", "categories", "keywords"]

    @pytest.mark.asyncio
    async def test_summary_shape(self, db, clock, make_manuscript):
        await ManuscriptRepository(db, clock).insert(make_manuscript())
        record = await ArtifactIndex(db).upsert_published(_artifact(clock))
        assert set(record.summary()) == {"kind", "size", "cost", "timestamp", "version", "model"}


class TestUsageRepository:
    @pytest.mark.asyncio
    async def test_free_plan_without_subscription(self, db, clock):
        quota = await UsageRepository(db, clock, PLAN_LIMITS).quota("user-1")
        assert quota.plan_type == "free"
        assert quota.plan_limit == 5
        assert quota.used_this_period == 0
        assert quota.period_start == datetime(2026, 3, 1, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_usage_recorded_once_per_report(self, db, clock):
        usage = UsageRepository(db, clock, PLAN_LIMITS)
        await usage.record_usage_statement(_usage(clock)).run()
        await usage.record_usage_statement(_usage(clock)).run()

        assert len(await usage.events_for_report("rep00001")) == 1
        assert (await usage.quota("user-1")).used_this_period == 1

    @pytest.mark.asyncio
    async def test_subscription_plan_and_period(self, db, clock):
        usage = UsageRepository(db, clock, PLAN_LIMITS)
        start = datetime(2026, 3, 10, tzinfo=timezone.utc)
        await usage.save_subscription("user-1", "pro", start, start + timedelta(days=30))

        quota = await usage.quota("user-1")
        assert quota.plan_type == "pro"
        assert quota.plan_limit == 10
        assert quota.subscription_id.startswith("sub_")

    @pytest.mark.asyncio
    async def test_exhausted(self, db, clock):
        usage = UsageRepository(db, clock, PLAN_LIMITS)
        for n in range(5):
            await usage.record_usage_statement(_usage(clock, f"rep0000{n}")).run()
        assert (await usage.quota("user-1")).exhausted

    def test_calendar_month_wraps_year(self):
        start, end = calendar_month(datetime(2026, 12, 31, 23, 59, tzinfo=timezone.utc))
        assert start == datetime(2026, 12, 1, tzinfo=timezone.utc)
        assert end == datetime(2027, 1, 1, tzinfo=timezone.utc)


class TestCostLedgerAndAudit:
    @pytest.mark.asyncio
    async def test_cost_total(self, db, clock):
        ledger = CostLedger(db, clock)
        for stage, cost in (("developmental", 0.01), ("line-editing", 0.02)):
            await ledger.record(
                StageCost(stage=stage, calls=1, input_tokens=1000, output_tokens=200, cost_usd=cost),
                user_id="user-1",
                manuscript_id="ms-0001",
                report_id="rep00001",
                model="claude-sonnet-4-20250514",
                pipeline="analysis",
            )
        assert await ledger.total_for_report("rep00001") == pytest.approx(0.03)
        assert await ledger.total_for_report("other") == 0.0

    @pytest.mark.asyncio
    async def test_audit_entries(self, db, clock):
        audit = AuditLog(db, clock)
        assert await audit.record("upload", "manuscript", "ms-0001", "user-1", {"size": 10})
        entries = await audit.entries("manuscript", "ms-0001")
        assert entries[0]["action"] == "upload"
        assert entries[0]["metadata"] == {"size": 10}

    @pytest.mark.asyncio
    async def test_audit_failure_is_not_raised(self, db, clock):
        audit = AuditLog(db, clock)
        await db.close()
        assert await audit.record("upload", "manuscript", "ms-0001") is False
