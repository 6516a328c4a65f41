# tests/unit/queue/test_memory_queue.py — v2
"""Tests for queue/memory_queue.py: redelivery, visibility and dead letters."""

from __future__ import annotations

import pytest

from manuscript_pipeline.core.models import QueueMessage
from manuscript_pipeline.queue.base_queue import queue_for_pipeline
from manuscript_pipeline.queue.memory_queue import MemoryJobQueue


def _message(report_id: str = "rep00001") -> QueueMessage:
    return QueueMessage(
        manuscript_key="user-1/ms-0001/raw.txt",
        report_id=report_id,
        manuscript_id="ms-0001",
        user_id="user-1",
    )


class TestMemoryJobQueue:
    @pytest.mark.asyncio
    async def test_fifo_and_ack(self, clock):
        queue = MemoryJobQueue(clock=clock)
        await queue.enqueue("analysis", _message("rep00001"))
        await queue.enqueue("analysis", _message("rep00002"))

        first = await queue.receive("analysis")
        assert first.message.report_id == "rep00001"
        assert first.attempt == 1
        await queue.ack(first)
        assert await queue.depth("analysis") == 1

    @pytest.mark.asyncio
    async def test_nack_delays_redelivery(self, clock):
        queue = MemoryJobQueue(clock=clock)
        await queue.enqueue("analysis", _message())
        delivery = await queue.receive("analysis")

        assert await queue.nack(delivery, retry_after=30) is False
        assert await queue.receive("analysis") is None
        clock.advance(30)
        again = await queue.receive("analysis")
        assert again.attempt == 2
        assert again.message.attempt == 2

    @pytest.mark.asyncio
    async def test_visibility_timeout_redelivers(self, clock):
        queue = MemoryJobQueue(visibility_timeout=900, clock=clock)
        await queue.enqueue("assets", _message())
        first = await queue.receive("assets")

        clock.advance(900)
        second = await queue.receive("assets")
        assert second.attempt == 2

        # the first worker's late ack must not remove the redelivered message
        await queue.ack(first)
        await queue.ack(second)
        assert await queue.depth("assets") == 0

    @pytest.mark.asyncio
    async def test_dead_letter_after_max_attempts(self, clock):
        queue = MemoryJobQueue(max_attempts=5, clock=clock)
        await queue.enqueue("analysis", _message())

        dead = False
        for _ in range(5):
            delivery = await queue.receive("analysis")
            dead = await queue.nack(delivery)
        assert dead is True
        assert await queue.receive("analysis") is None
        letters = await queue.dead_letters("analysis")
        assert [m.report_id for m in letters] == ["rep00001"]
        assert letters[0].attempt == 5

    @pytest.mark.asyncio
    async def test_expired_last_attempt_is_handed_back(self, clock):
        queue = MemoryJobQueue(max_attempts=2, visibility_timeout=60, clock=clock)
        await queue.enqueue("analysis", _message())
        for _ in range(2):
            delivery = await queue.receive("analysis")
            assert not delivery.exhausted
            clock.advance(60)

        final = await queue.receive("analysis")
        assert final.exhausted
        assert final.attempt == 2
        assert await queue.dead_letters("analysis") == []

        assert await queue.nack(final) is True
        assert [m.report_id for m in await queue.dead_letters("analysis")] == ["rep00001"]
        assert await queue.receive("analysis") is None

    @pytest.mark.asyncio
    async def test_exhausted_delivery_expires_again(self, clock):
        queue = MemoryJobQueue(max_attempts=1, visibility_timeout=60, clock=clock)
        await queue.enqueue("analysis", _message())
        await queue.receive("analysis")
        clock.advance(60)
        assert (await queue.receive("analysis")).exhausted
        clock.advance(60)
        again = await queue.receive("analysis")
        assert again.exhausted
        assert again.attempt == 1

    def test_queue_for_pipeline(self):
        assert queue_for_pipeline("analysis") == "analysis"
        assert queue_for_pipeline("assets") == "assets"
        assert queue_for_pipeline("audiobook") == "assets"
