# src/cache/memory_store.py — v1
"""In-process cache store (CACHE_BACKEND=memory).

Single-worker deployments and tests. Expiry is evaluated against the
injected clock, so tests can advance time without sleeping. Values are
stored serialized so callers never share mutable state with the store.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any

from manuscript_pipeline.cache.base_cache_store import BaseCacheStore
from manuscript_pipeline.core.clock import Clock, SystemClock


class MemoryCacheStore(BaseCacheStore):
    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._data: dict[str, tuple[str, datetime | None]] = {}

    def _live(self, key: str) -> str | None:
        item = self._data.get(key)
        if item is None:
            return None
        payload, expires_at = item
        if expires_at is not None and self._clock.now() >= expires_at:
            del self._data[key]
            return None
        return payload

    async def get(self, key: str) -> Any | None:
        payload = self._live(key)
        return json.loads(payload) if payload is not None else None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        expires_at = self._clock.now() + timedelta(seconds=ttl) if ttl else None
        self._data[key] = (json.dumps(value), expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def delete_prefix(self, prefix: str) -> int:
        doomed = [k for k in self._data if k.startswith(prefix)]
        for key in doomed:
            del self._data[key]
        return len(doomed)

    def keys(self) -> list[str]:
        """Live keys, for inspection in tests and the CLI."""
        return [k for k in list(self._data) if self._live(k) is not None]
