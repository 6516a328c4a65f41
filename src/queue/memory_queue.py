# src/queue/memory_queue.py — v2
"""In-process job queue (QUEUE_BACKEND=memory).

Visibility and retry delays are evaluated against the injected clock, so
tests drive redelivery by advancing a fake clock rather than sleeping.
"""

from __future__ import annotations

import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from manuscript_pipeline.core.clock import Clock, SystemClock
from manuscript_pipeline.core.models import QueueMessage
from manuscript_pipeline.queue.base_queue import BaseJobQueue, Delivery

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    body: str
    attempts: int = 0
    receipt: str | None = None


@dataclass
class _Queue:
    pending: deque[str] = field(default_factory=deque)
    delayed: dict[str, datetime] = field(default_factory=dict)
    inflight: dict[str, datetime] = field(default_factory=dict)
    expired: deque[str] = field(default_factory=deque)
    dead: list[str] = field(default_factory=list)
    entries: dict[str, _Entry] = field(default_factory=dict)


class MemoryJobQueue(BaseJobQueue):
    def __init__(
        self,
        max_attempts: int = 5,
        visibility_timeout: int = 900,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(max_attempts, visibility_timeout)
        self._clock = clock or SystemClock()
        self._queues: dict[str, _Queue] = {}

    def _q(self, name: str) -> _Queue:
        return self._queues.setdefault(name, _Queue())

    async def enqueue(self, queue: str, message: QueueMessage) -> str:
        message_id = uuid.uuid4().hex
        q = self._q(queue)
        q.entries[message_id] = _Entry(body=message.to_wire())
        q.pending.append(message_id)
        logger.debug("Enqueued %s on %s (report %s)", message_id, queue, message.report_id)
        return message_id

    def _promote(self, q: _Queue, now: datetime) -> None:
        for message_id, visible_at in sorted(q.delayed.items(), key=lambda kv: kv[1]):
            if visible_at <= now:
                del q.delayed[message_id]
                q.pending.append(message_id)
        for message_id, deadline in list(q.inflight.items()):
            if deadline <= now:
                del q.inflight[message_id]
                entry = q.entries[message_id]
                entry.receipt = None
                if entry.attempts >= self.max_attempts:
                    q.expired.append(message_id)
                    logger.warning("Message %s timed out on its last attempt", message_id)
                else:
                    q.pending.append(message_id)
                    logger.info("Message %s visibility expired; redelivering", message_id)

    async def receive(self, queue: str) -> Delivery | None:
        q = self._q(queue)
        now = self._clock.now()
        self._promote(q, now)
        exhausted = bool(q.expired)
        if exhausted:
            message_id = q.expired.popleft()
            entry = q.entries[message_id]
        elif q.pending:
            message_id = q.pending.popleft()
            entry = q.entries[message_id]
            entry.attempts += 1
        else:
            return None
        entry.receipt = uuid.uuid4().hex
        q.inflight[message_id] = now + timedelta(seconds=self.visibility_timeout)
        message = QueueMessage.from_wire(entry.body).model_copy(update={"attempt": entry.attempts})
        return Delivery(
            queue=queue,
            message_id=message_id,
            receipt=entry.receipt,
            attempt=entry.attempts,
            message=message,
            received_at=now,
            exhausted=exhausted,
        )

    def _owns(self, q: _Queue, delivery: Delivery) -> bool:
        entry = q.entries.get(delivery.message_id)
        return (
            entry is not None
            and entry.receipt == delivery.receipt
            and delivery.message_id in q.inflight
        )

    async def ack(self, delivery: Delivery) -> None:
        q = self._q(delivery.queue)
        if not self._owns(q, delivery):
            logger.info("Ignoring stale ack for %s", delivery.message_id)
            return
        del q.inflight[delivery.message_id]
        del q.entries[delivery.message_id]

    async def nack(self, delivery: Delivery, retry_after: int = 0) -> bool:
        q = self._q(delivery.queue)
        if not self._owns(q, delivery):
            logger.info("Ignoring stale nack for %s", delivery.message_id)
            return False
        del q.inflight[delivery.message_id]
        entry = q.entries[delivery.message_id]
        entry.receipt = None
        if entry.attempts >= self.max_attempts:
            q.dead.append(delivery.message_id)
            logger.warning(
                "Message %s dead-lettered after %d attempts", delivery.message_id, entry.attempts
            )
            return True
        q.delayed[delivery.message_id] = self._clock.now() + timedelta(seconds=retry_after)
        return False

    async def dead_letters(self, queue: str) -> list[QueueMessage]:
        q = self._q(queue)
        return [
            QueueMessage.from_wire(q.entries[m].body).model_copy(update={"attempt": q.entries[m].attempts})
            for m in q.dead
        ]

    async def depth(self, queue: str) -> int:
        q = self._q(queue)
        return len(q.pending) + len(q.delayed) + len(q.expired)
