# src/cache/base_cache_store.py — v2
"""Abstract TTL key-value store.

Backs both the artifact read cache and the status / report-id records.
Values are JSON-serializable documents.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class BaseCacheStore(ABC):
    """Unified interface for key-value backends with per-key expiry."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Value stored at key, or None when absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store value; ``ttl`` in seconds, None keeps it until deleted."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key (no-op when absent)."""

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Remove every key starting with prefix. Returns the number removed."""

    async def close(self) -> None:
        """Release connections (no-op by default)."""
