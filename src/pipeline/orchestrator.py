# src/pipeline/orchestrator.py — v2
"""Agent orchestrator: drive one job through its plan.

Flow of one delivery:
  1. Load the job row and its status. A complete job is skipped (its
     status repaired if needed); a cancelled one is finalized.
  2. Mark running; analysis jobs move the manuscript queued -> analyzing.
  3. Check preconditions: every kind the plan reads but does not produce
     must already be published (non-analysis pipelines always need
     ``developmental``).
  4. Load and decode the raw manuscript.
  5. For each plan level, skip kinds this report_id already published,
     check cancellation, then run the remaining stages concurrently.
     Any stage failure raises StageFailed once the level has joined.
  6. Success: manuscript analyzing -> analyzed (analysis only), the usage
     event and the job's terminal row are committed in one batch; then
     the status completes and the manuscript's views are invalidated.

Redelivery of the same report_id resumes at the first unpublished stage;
the relational index, not the object store, decides what is done.
"""

from __future__ import annotations

import logging
from typing import Literal

from manuscript_pipeline.cache.artifact_cache import ArtifactCache
from manuscript_pipeline.core.clock import Clock
from manuscript_pipeline.core.errors import (
    IllegalTransition,
    ObjectStoreUnavailable,
    PipelineError,
    PreconditionMissing,
    StageFailed,
)
from manuscript_pipeline.core.models import (
    Job,
    Manuscript,
    QueueMessage,
    UsageEvent,
    analysis_type_for,
)
from manuscript_pipeline.core.state_machine import ManuscriptStateMachine
from manuscript_pipeline.db.artifact_index import ArtifactIndex
from manuscript_pipeline.db.cost_ledger import CostLedger
from manuscript_pipeline.db.database import BaseDatabase
from manuscript_pipeline.db.job_repo import JobRepository
from manuscript_pipeline.db.manuscript_repo import ManuscriptRepository
from manuscript_pipeline.db.usage_repo import UsageRepository
from manuscript_pipeline.extraction.extractor_factory import extract_manuscript
from manuscript_pipeline.llm.retry import RetryPolicy
from manuscript_pipeline.logging.context import set_job_context
from manuscript_pipeline.pipeline.dag_builder import ExecutionPlan, plan_for
from manuscript_pipeline.pipeline.plugin_kit.models import StageContext
from manuscript_pipeline.pipeline.publisher import decode_artifact
from manuscript_pipeline.pipeline.registry import AgentRegistry
from manuscript_pipeline.pipeline.runner import RunProgress, StageRunner
from manuscript_pipeline.status.tracker import StatusTracker
from manuscript_pipeline.storage.base_object_store import BaseObjectStore
from manuscript_pipeline.tracking.call_logger import CallLogger

logger = logging.getLogger(__name__)

RunOutcome = Literal["complete", "skipped", "cancelled"]


def user_message(error: BaseException) -> str:
    """User-safe failure text; never an internal stack."""
    if isinstance(error, PipelineError):
        return error.message
    return "internal error"


class AgentOrchestrator:
    def __init__(
        self,
        db: BaseDatabase,
        manuscripts: ManuscriptRepository,
        jobs: JobRepository,
        artifacts: ArtifactIndex,
        usage: UsageRepository,
        costs: CostLedger,
        state_machine: ManuscriptStateMachine,
        status: StatusTracker,
        objects: BaseObjectStore,
        cache: ArtifactCache,
        registry: AgentRegistry,
        runner: StageRunner,
        clock: Clock,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._db = db
        self._manuscripts = manuscripts
        self._jobs = jobs
        self._artifacts = artifacts
        self._usage = usage
        self._costs = costs
        self._state = state_machine
        self._status = status
        self._objects = objects
        self._cache = cache
        self._registry = registry
        self._runner = runner
        self._clock = clock
        self._retry_policy = retry_policy or RetryPolicy()

    def plan(self, pipeline: str, kinds: list[str] | None = None) -> ExecutionPlan:
        return plan_for(self._registry.get_dependency_map(), pipeline, kinds)

    async def run(self, message: QueueMessage, attempt: int) -> RunOutcome:
        """Execute one delivery of a job.

        Raises:
            StageFailed: A stage of the current level failed.
            PreconditionMissing: Job row, manuscript or an input artifact is missing.
            Exception: Infrastructure errors from the stores, unchanged.
        """
        report_id = message.report_id
        set_job_context(message.manuscript_id, report_id, attempt)

        job = await self._jobs.get(report_id)
        if job is None:
            raise PreconditionMissing(f"Job {report_id} has no job record")
        job = job.model_copy(update={"attempt": attempt})
        status = await self._status.ensure(report_id, job.manuscript_id, job.pipeline)

        if job.state == "complete":
            if status.state != "complete":
                await self._status.complete(report_id)
            logger.info("Job %s already complete; skipping redelivery", report_id)
            return "skipped"
        if job.state == "cancelled" or status.state == "cancelled":
            await self._finalize_cancel(job)
            return "cancelled"
        if job.state == "failed":
            logger.warning("Job %s already failed; dropping redelivery", report_id)
            return "skipped"

        manuscript = await self._manuscripts.get(job.manuscript_id)
        if manuscript is None:
            raise PreconditionMissing(f"Manuscript {job.manuscript_id} no longer exists")

        await self._jobs.record_attempt(report_id, attempt)
        await self._status.start(report_id, None, attempt)
        if job.pipeline == "analysis":
            previous = await self._state.transition(manuscript.id, "analyzing")
            if previous != "analyzing":
                await self._cache.invalidate(job.user_id, manuscript.id, kinds=[])

        plan = self.plan(job.pipeline, job.kinds)
        await self._check_preconditions(job, manuscript, plan)

        raw = await self._objects.get(manuscript.storage_key)
        if raw is None:
            raise PreconditionMissing("The raw manuscript is missing from object storage")
        extracted = await extract_manuscript(raw, manuscript.file_type)

        context = StageContext(
            manuscript_id=manuscript.id,
            report_id=report_id,
            user_id=job.user_id,
            title=manuscript.title,
            genre=job.genre,
            style_guide=job.style_guide,
            text=extracted.text,
            word_count=extracted.word_count,
            chapter_count=extracted.chapter_count,
            call_logger=CallLogger(report_id),
            retry_policy=self._retry_policy,
        )

        published = await self._artifacts.published_by(manuscript.id, report_id)
        progress = RunProgress(
            total=plan.total_agents,
            completed=len(published.intersection(plan.flat_order)),
        )
        logger.info(
            "Running %s job %s (attempt %d): %s, %d/%d already published",
            job.pipeline, report_id, attempt, plan.stages, progress.completed, progress.total,
        )

        for level in plan.stages:
            pending = [kind for kind in level if kind not in published]
            if not pending:
                logger.info("Level %s already published; skipping", level)
                continue
            if await self._status.is_cancelled(report_id):
                await self._finalize_cancel(job)
                return "cancelled"

            await self._load_inputs(context, pending)
            result = await self._runner.run_level(
                pending, context, job, manuscript.storage_key, plan, progress
            )
            for outcome in result.outcomes:
                if outcome.published:
                    published.add(outcome.kind)
                    context.artifacts[outcome.kind] = outcome.data or {}

            if result.failures:
                errors = [StageFailed(o.kind, o.error) for o in result.failures]
                for error in errors:
                    logger.error("%s", error.message, exc_info=error.cause)
                await self._status.note(
                    report_id,
                    errors[0].message,
                    error="; ".join(e.message for e in errors),
                )
                raise errors[0]
            if result.cancelled:
                await self._finalize_cancel(job)
                return "cancelled"

        if await self._status.is_cancelled(report_id):
            await self._finalize_cancel(job)
            return "cancelled"

        await self._commit_success(job, plan)
        return "complete"

    async def _check_preconditions(
        self, job: Job, manuscript: Manuscript, plan: ExecutionPlan
    ) -> None:
        required = set(plan.external)
        if job.pipeline != "analysis":
            required.add("developmental")
        if not required:
            return
        present = {r.kind for r in await self._artifacts.list(manuscript.id)}
        missing = sorted(required - present)
        if missing:
            raise PreconditionMissing(
                f"The {job.pipeline} pipeline requires {', '.join(missing)} to be published first",
                missing=missing,
            )

    async def _load_inputs(self, context: StageContext, kinds: list[str]) -> None:
        """Read every dependency of ``kinds`` not yet in the context."""
        for kind in kinds:
            for dep in self._registry.get_or_raise(kind).dependencies:
                if dep in context.artifacts:
                    continue
                record = await self._artifacts.get(context.manuscript_id, dep)
                if record is None:
                    raise PreconditionMissing(f"{kind} needs the {dep} artifact", missing=[dep])
                blob = await self._objects.get(record.storage_key)
                if blob is None:
                    raise ObjectStoreUnavailable(f"The {dep} artifact is not readable yet")
                data = decode_artifact(blob)
                context.artifacts[dep] = data if isinstance(data, dict) else {"value": data}

    async def _commit_success(self, job: Job, plan: ExecutionPlan) -> None:
        quota = await self._usage.quota(job.user_id)
        total_cost = await self._costs.total_for_report(job.report_id)
        event = UsageEvent(
            user_id=job.user_id,
            subscription_id=quota.subscription_id,
            manuscript_id=job.manuscript_id,
            report_id=job.report_id,
            analysis_type=analysis_type_for(job.pipeline),
            credits_used=1,
            billing_period_start=quota.period_start,
            billing_period_end=quota.period_end,
            timestamp=self._clock.now(),
        )

        statements = []
        if job.pipeline == "analysis":
            manuscript = await self._manuscripts.get(job.manuscript_id)
            if manuscript is None:
                raise PreconditionMissing(f"Manuscript {job.manuscript_id} no longer exists")
            statements.append(
                self._state.statement(manuscript.status, manuscript.id, "analyzed")
            )
        assets = plan.flat_order if job.pipeline != "analysis" else None
        statements.append(self._usage.record_usage_statement(event, assets=assets))
        statements.append(
            self._jobs.finish_statement(job.report_id, "complete", total_cost_usd=total_cost)
        )
        await self._db.batch(statements)

        await self._status.complete(job.report_id)
        await self._cache.invalidate(job.user_id, job.manuscript_id, kinds=[])
        logger.info(
            "Job %s complete: %d stages, $%.4f", job.report_id, plan.total_agents, total_cost
        )

    async def _finalize_cancel(self, job: Job) -> None:
        """Cancelled jobs record no usage; the manuscript returns to its prior state."""
        await self._status.cancel(job.report_id)
        await self._jobs.finish(job.report_id, "cancelled")
        await self._restore_manuscript(job)
        await self._cache.invalidate(job.user_id, job.manuscript_id, kinds=[])
        logger.info("Job %s cancelled", job.report_id)

    async def fail_job(self, message: QueueMessage, error: BaseException) -> None:
        """Final failure after the last attempt: status and job failed, manuscript restored."""
        text = user_message(error)
        job = await self._jobs.get(message.report_id)
        await self._status.ensure(message.report_id, message.manuscript_id, message.pipeline)
        await self._status.fail(message.report_id, text)
        finished = await self._jobs.finish(message.report_id, "failed", last_error=text)
        if not finished:
            logger.info("Job %s was already settled; leaving it as is", message.report_id)
            return
        if job is not None:
            await self._restore_manuscript(job)
            await self._cache.invalidate(job.user_id, job.manuscript_id, kinds=[])
        logger.error("Job %s failed permanently: %s", message.report_id, text)

    async def _restore_manuscript(self, job: Job) -> None:
        prior = job.prior_manuscript_state
        if prior is None:
            return
        try:
            await self._state.transition(job.manuscript_id, prior)
        except IllegalTransition as e:
            logger.warning("Could not restore manuscript %s to %s: %s", job.manuscript_id, prior, e)
