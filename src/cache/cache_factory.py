# src/cache/cache_factory.py — v3
"""Factory for key-value store instantiation.

Two instances are built per process: the advisory artifact cache
(``namespace="cache"``) and the required status / report-id store
(``namespace="state"``).
"""

from __future__ import annotations

from manuscript_pipeline.cache.base_cache_store import BaseCacheStore
from manuscript_pipeline.config.settings import Settings
from manuscript_pipeline.core.clock import Clock


def create_cache_store(
    settings: Settings,
    namespace: str = "cache",
    clock: Clock | None = None,
) -> BaseCacheStore:
    """Instantiate the configured key-value backend.

    Args:
        settings: Application settings.
        namespace: Key namespace, keeps cache and state apart on a shared Redis.
        clock: Time source for the memory backend's expiry.

    Returns:
        Configured BaseCacheStore implementation.
    """
    backend = settings.cache_backend

    if backend == "memory":
        from manuscript_pipeline.cache.memory_store import MemoryCacheStore
        return MemoryCacheStore(clock=clock)

    if backend == "redis":
        from manuscript_pipeline.cache.redis_store import RedisCacheStore
        if not settings.redis_url:
            raise ValueError("REDIS_URL must be set when CACHE_BACKEND=redis")
        return RedisCacheStore(redis_url=settings.redis_url, namespace=f"mp:{namespace}:")

    raise ValueError(f"Unsupported cache backend: {backend!r}")
