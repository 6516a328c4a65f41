# src/queue/base_queue.py — v2
"""Abstract job queue: durable FIFO with at-least-once delivery.

A received message stays invisible until it is acked, nacked, or its
visibility timeout expires, after which it is delivered again. Every
delivery increments the message's attempt counter; a nack at or past
``max_attempts`` moves the message to the dead-letter list instead of
scheduling a retry.

A message whose last attempt expires unsettled (the worker crashed or
stalled) is delivered once more with ``exhausted`` set and its attempt
counter unchanged. The consumer must finalize the job and nack it, which
dead-letters it; it is never dead-lettered behind the consumer's back.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime

from manuscript_pipeline.core.models import QueueMessage

logger = logging.getLogger(__name__)

ANALYSIS_QUEUE = "analysis"
ASSETS_QUEUE = "assets"
QUEUE_NAMES = (ANALYSIS_QUEUE, ASSETS_QUEUE)


def queue_for_pipeline(pipeline: str) -> str:
    """analysis -> ``analysis``; assets and audiobook -> ``assets``."""
    return ANALYSIS_QUEUE if pipeline == "analysis" else ASSETS_QUEUE


@dataclass(frozen=True)
class Delivery:
    """One delivery of a message; ``receipt`` is unique per delivery."""

    queue: str
    message_id: str
    receipt: str
    attempt: int
    message: QueueMessage
    received_at: datetime
    exhausted: bool = False


class BaseJobQueue(ABC):
    """Unified interface for queue backends."""

    def __init__(self, max_attempts: int = 5, visibility_timeout: int = 900) -> None:
        self.max_attempts = max_attempts
        self.visibility_timeout = visibility_timeout

    @abstractmethod
    async def enqueue(self, queue: str, message: QueueMessage) -> str:
        """Persist a message; returns its id once durably stored."""

    @abstractmethod
    async def receive(self, queue: str) -> Delivery | None:
        """Next visible message, or None if the queue is idle."""

    @abstractmethod
    async def ack(self, delivery: Delivery) -> None:
        """Remove a delivered message. Stale receipts are ignored."""

    @abstractmethod
    async def nack(self, delivery: Delivery, retry_after: int = 0) -> bool:
        """Return a message for retry after ``retry_after`` seconds.

        Returns:
            True if the message was dead-lettered instead.
        """

    @abstractmethod
    async def dead_letters(self, queue: str) -> list[QueueMessage]:
        """Messages that exhausted their attempt budget, oldest first."""

    @abstractmethod
    async def depth(self, queue: str) -> int:
        """Messages waiting for delivery (pending plus scheduled retries)."""

    async def consume(
        self,
        queue: str,
        poll_interval: float = 1.0,
        stop: asyncio.Event | None = None,
    ) -> AsyncIterator[Delivery]:
        """Yield deliveries until ``stop`` is set, polling when idle."""
        while stop is None or not stop.is_set():
            delivery = await self.receive(queue)
            if delivery is None:
                await asyncio.sleep(poll_interval)
                continue
            yield delivery

    async def close(self) -> None:
        """Release connections (no-op by default)."""
