# src/pipeline/worker.py — v2
"""Queue worker: deliver messages to the orchestrator and settle them.

Settlement rules for one delivery:
  - success, skip or cancellation: ack;
  - failure with attempt < max_attempts: note the error (status stays
    running) and nack with the retry delay;
  - failure on the last attempt: fail the job, then nack, which moves the
    message to the dead-letter list;
  - an exhausted delivery (the last attempt expired unsettled): fail the
    job without running it, then nack.

``run_forever`` survives transient queue errors: it logs them, waits one
poll interval and polls again.
"""

from __future__ import annotations

import asyncio
import logging

from manuscript_pipeline.core.errors import AttemptsExhausted, TransientError
from manuscript_pipeline.db.job_repo import JobRepository
from manuscript_pipeline.logging.context import clear_context, set_job_context
from manuscript_pipeline.pipeline.orchestrator import AgentOrchestrator, user_message
from manuscript_pipeline.queue.base_queue import BaseJobQueue, Delivery
from manuscript_pipeline.status.tracker import StatusTracker

logger = logging.getLogger(__name__)

DEFAULT_DRAIN_LIMIT = 1000


class Worker:
    def __init__(
        self,
        queue: BaseJobQueue,
        orchestrator: AgentOrchestrator,
        status: StatusTracker,
        jobs: JobRepository,
        retry_delay_seconds: int = 30,
        poll_interval: float = 1.0,
    ) -> None:
        self._queue = queue
        self._orchestrator = orchestrator
        self._status = status
        self._jobs = jobs
        self._retry_delay = retry_delay_seconds
        self._poll_interval = poll_interval
        self._stop = asyncio.Event()

    @property
    def max_attempts(self) -> int:
        return self._queue.max_attempts

    def stop(self) -> None:
        self._stop.set()

    async def handle(self, delivery: Delivery) -> str:
        """Process and settle one delivery; returns the outcome name."""
        message = delivery.message
        if delivery.exhausted:
            return await self._settle_exhausted(delivery)
        set_job_context(message.manuscript_id, message.report_id, delivery.attempt)
        try:
            outcome = await self._orchestrator.run(message, delivery.attempt)
        except Exception as exc:
            return await self._settle_failure(delivery, exc)
        finally:
            clear_context()

        await self._queue.ack(delivery)
        logger.info("Job %s %s on attempt %d", message.report_id, outcome, delivery.attempt)
        return outcome

    async def _settle_failure(self, delivery: Delivery, exc: Exception) -> str:
        message = delivery.message
        text = user_message(exc)
        if delivery.attempt < self.max_attempts:
            logger.warning(
                "Job %s attempt %d/%d failed: %s",
                message.report_id, delivery.attempt, self.max_attempts, text,
                exc_info=not hasattr(exc, "message"),
            )
            await self._status.ensure(message.report_id, message.manuscript_id, message.pipeline)
            await self._status.note(
                message.report_id,
                f"{text} (attempt {delivery.attempt} of {self.max_attempts}; retrying)",
                error=text,
            )
            await self._jobs.record_error(message.report_id, text)
            await self._queue.nack(delivery, retry_after=self._retry_delay)
            return "retry"

        await self._orchestrator.fail_job(message, exc)
        await self._queue.nack(delivery, retry_after=0)
        logger.error("Job %s dead-lettered after %d attempts", message.report_id, delivery.attempt)
        return "failed"

    async def _settle_exhausted(self, delivery: Delivery) -> str:
        message = delivery.message
        set_job_context(message.manuscript_id, message.report_id, delivery.attempt)
        try:
            error = AttemptsExhausted(
                f"job did not finish within {delivery.attempt} attempts"
            )
            await self._orchestrator.fail_job(message, error)
        finally:
            clear_context()
        await self._queue.nack(delivery, retry_after=0)
        logger.error(
            "Job %s expired on its last attempt; dead-lettered", message.report_id
        )
        return "failed"

    async def run_once(self, queue: str) -> str | None:
        """Handle at most one delivery; None when the queue is idle."""
        delivery = await self._queue.receive(queue)
        if delivery is None:
            return None
        return await self.handle(delivery)

    async def drain(self, queue: str, limit: int = DEFAULT_DRAIN_LIMIT) -> list[str]:
        """Handle deliveries until the queue is idle (or ``limit`` is reached)."""
        outcomes: list[str] = []
        while len(outcomes) < limit:
            outcome = await self.run_once(queue)
            if outcome is None:
                break
            outcomes.append(outcome)
        return outcomes

    async def run_forever(self, queues: list[str]) -> None:
        """Poll ``queues`` round-robin until stop() is called."""
        logger.info("Worker started on %s", ", ".join(queues))
        while not self._stop.is_set():
            handled = False
            for queue in queues:
                try:
                    if await self.run_once(queue) is not None:
                        handled = True
                except TransientError as e:
                    logger.warning("Queue %s unavailable, backing off: %s", queue, e.message)
            if not handled:
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self._poll_interval)
                except asyncio.TimeoutError:
                    pass
        logger.info("Worker stopped")
