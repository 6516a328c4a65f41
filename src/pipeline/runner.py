# src/pipeline/runner.py — v2
"""Stage runner: execute one plan level with deadlines, costing and publication.

Stages of a level run as concurrent tasks awaited together; a failing
stage never aborts its siblings. Each stage:

  1. checks the cancellation flag (a cancelled job starts no new stage),
  2. runs its agent under the soft stage deadline,
  3. writes its cost row (tokens are spent even when parsing fails),
  4. publishes its artifact and reports progress.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from manuscript_pipeline.core.errors import StageTimeout
from manuscript_pipeline.core.models import ArtifactRecord, Job
from manuscript_pipeline.logging.context import set_stage_context
from manuscript_pipeline.pipeline.dag_builder import ExecutionPlan
from manuscript_pipeline.pipeline.plugin_kit.models import StageContext

if TYPE_CHECKING:
    from manuscript_pipeline.db.cost_ledger import CostLedger
    from manuscript_pipeline.llm.base_client import BaseLLMClient
    from manuscript_pipeline.pipeline.publisher import ArtifactPublisher
    from manuscript_pipeline.pipeline.registry import AgentRegistry
    from manuscript_pipeline.status.tracker import StatusTracker

logger = logging.getLogger(__name__)


@dataclass
class RunProgress:
    """Completed-stage counter for one delivery of a job."""

    total: int
    completed: int = 0

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 100
        return (100 * self.completed) // self.total


@dataclass
class StageOutcome:
    kind: str
    record: ArtifactRecord | None = None
    data: dict[str, Any] | None = None
    error: BaseException | None = None
    cancelled: bool = False

    @property
    def published(self) -> bool:
        return self.record is not None


@dataclass
class LevelResult:
    outcomes: list[StageOutcome] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def failures(self) -> list[StageOutcome]:
        return [o for o in self.outcomes if o.error is not None]

    @property
    def cancelled(self) -> bool:
        return any(o.cancelled for o in self.outcomes)


class StageRunner:
    """Run plan levels for the orchestrator.

    Args:
        registry: Loaded AgentRegistry.
        llm_factory: Callable(stage) -> BaseLLMClient.
        publisher: Two-phase artifact publisher.
        costs: Per-stage cost ledger.
        status: Status tracker for cancellation and progress.
        stage_deadline_s: Soft deadline for one stage's agent execution.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        llm_factory: Callable[[str], BaseLLMClient],
        publisher: ArtifactPublisher,
        costs: CostLedger,
        status: StatusTracker,
        stage_deadline_s: float,
    ) -> None:
        self._registry = registry
        self._llm_factory = llm_factory
        self._publisher = publisher
        self._costs = costs
        self._status = status
        self._stage_deadline_s = stage_deadline_s

    async def run_level(
        self,
        kinds: list[str],
        context: StageContext,
        job: Job,
        manuscript_key: str,
        plan: ExecutionPlan,
        progress: RunProgress,
    ) -> LevelResult:
        """Run ``kinds`` concurrently and collect one outcome per stage."""
        start_ns = time.monotonic_ns()
        results = await asyncio.gather(
            *(
                self._run_stage(kind, context, job, manuscript_key, plan, progress)
                for kind in kinds
            ),
            return_exceptions=True,
        )

        level = LevelResult()
        for kind, result in zip(kinds, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.warning("Stage '%s' failed: %s", kind, result)
                level.outcomes.append(StageOutcome(kind=kind, error=result))
            else:
                level.outcomes.append(result)
        level.duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000

        logger.info(
            "Level %s finished in %dms: %d published, %d failed",
            kinds,
            level.duration_ms,
            sum(o.published for o in level.outcomes),
            len(level.failures),
        )
        return level

    async def _run_stage(
        self,
        kind: str,
        context: StageContext,
        job: Job,
        manuscript_key: str,
        plan: ExecutionPlan,
        progress: RunProgress,
    ) -> StageOutcome:
        set_stage_context(kind)
        if await self._status.is_cancelled(job.report_id):
            logger.info("Job cancelled; not starting stage '%s'", kind)
            return StageOutcome(kind=kind, cancelled=True)

        agent = self._registry.get_or_raise(kind)
        llm = self._llm_factory(kind)
        await self._status.start(job.report_id, kind, job.attempt)

        try:
            output = await asyncio.wait_for(
                agent.execute(context, llm), timeout=self._stage_deadline_s
            )
        except asyncio.TimeoutError as e:
            raise StageTimeout(
                f"stage did not finish within {self._stage_deadline_s:g}s"
            ) from e
        finally:
            await self._record_cost(kind, context, job)

        stage_cost = context.call_logger.stage_cost(kind) if context.call_logger else None
        record = await self._publisher.publish(
            job.user_id,
            job.manuscript_id,
            manuscript_key,
            kind,
            output.data,
            report_id=job.report_id,
            cost=stage_cost,
        )
        progress.completed += 1
        await self._status.stage_done(
            job.report_id, kind, plan.next_after(kind), progress.percent
        )
        return StageOutcome(kind=kind, record=record, data=output.data)

    async def _record_cost(self, kind: str, context: StageContext, job: Job) -> None:
        if context.call_logger is None:
            return
        stage_cost = context.call_logger.stage_cost(kind)
        if stage_cost.calls == 0:
            return
        await self._costs.record(
            stage_cost,
            user_id=job.user_id,
            manuscript_id=job.manuscript_id,
            report_id=job.report_id,
            model=stage_cost.model,
            pipeline=job.pipeline,
        )
