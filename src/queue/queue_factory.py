# src/queue/queue_factory.py — v1
"""Factory: instantiate the job queue from configuration."""

from __future__ import annotations

from manuscript_pipeline.config.settings import Settings
from manuscript_pipeline.core.clock import Clock
from manuscript_pipeline.queue.base_queue import BaseJobQueue


def create_job_queue(settings: Settings, clock: Clock | None = None) -> BaseJobQueue:
    """Create the queue backend selected by QUEUE_BACKEND.

    Raises:
        ValueError: If the backend is not supported or misconfigured.
    """
    if settings.queue_backend == "memory":
        from manuscript_pipeline.queue.memory_queue import MemoryJobQueue
        return MemoryJobQueue(
            max_attempts=settings.queue_max_attempts,
            visibility_timeout=settings.queue_visibility_timeout_seconds,
            clock=clock,
        )

    if settings.queue_backend == "redis":
        from manuscript_pipeline.queue.redis_queue import RedisJobQueue
        if not settings.redis_url:
            raise ValueError("REDIS_URL must be set when QUEUE_BACKEND=redis")
        return RedisJobQueue(
            redis_url=settings.redis_url,
            max_attempts=settings.queue_max_attempts,
            visibility_timeout=settings.queue_visibility_timeout_seconds,
            clock=clock,
        )

    raise ValueError(f"Unsupported queue backend: {settings.queue_backend!r}")
