# src/cache/redis_store.py — v2
"""Redis-based key-value store (CACHE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable for distributed/multi-instance deployments. Every key is
namespaced so the artifact cache and the status records can share one
Redis database without colliding.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from manuscript_pipeline.cache.base_cache_store import BaseCacheStore

logger = logging.getLogger(__name__)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


class RedisCacheStore(BaseCacheStore):
    """Redis-backed store using the asyncio client."""

    def __init__(self, redis_url: str, namespace: str = "mp:cache:", client: Any = None) -> None:
        if client is None:
            try:
                import redis.asyncio as aioredis
            except ImportError as e:
                raise ImportError(
                    "redis package required: pip install redis"
                ) from e
            client = aioredis.Redis.from_url(redis_url, decode_responses=True)
        self._client = client
        self._ns = namespace

    async def get(self, key: str) -> Any | None:
        data = await self._client.get(self._ns + key)
        if data is None:
            return None
        try:
            return json.loads(data)
        except ValueError as e:
            logger.warning("Dropping undecodable value at %s: %s", key, e)
            await self._client.delete(self._ns + key)
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        await self._client.set(self._ns + key, json.dumps(value), ex=ttl or None)

    async def delete(self, key: str) -> None:
        await self._client.delete(self._ns + key)

    async def delete_prefix(self, prefix: str) -> int:
        pattern = _GLOB_SPECIAL.sub(r"\\\1", self._ns + prefix) + "*"
        removed = 0
        batch: list[str] = []
        async for key in self._client.scan_iter(match=pattern, count=500):
            batch.append(key)
            if len(batch) >= 500:
                removed += await self._client.delete(*batch)
                batch = []
        if batch:
            removed += await self._client.delete(*batch)
        return removed

    async def close(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()
