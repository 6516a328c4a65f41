# src/storage/base_object_store.py — v1
"""Abstract object store interface.

Opaque blob storage keyed by string path. ``get`` returns None for missing
keys; every other backend failure surfaces as ObjectStoreUnavailable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from manuscript_pipeline.storage.models import ObjectInfo


class BaseObjectStore(ABC):
    """Unified interface for blob storage backends."""

    @abstractmethod
    async def put(
        self, key: str, content: bytes | str, metadata: dict[str, str] | None = None
    ) -> None:
        """Write content atomically at key, replacing any previous object."""

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Read object content, or None if the key does not exist."""

    @abstractmethod
    async def head(self, key: str) -> ObjectInfo | None:
        """Object size and custom metadata, or None if missing."""

    @abstractmethod
    async def list(self, prefix: str, limit: int = 1000) -> list[ObjectInfo]:
        """List objects whose key starts with prefix, sorted by key."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove an object. Deleting a missing key is not an error."""

    async def exists(self, key: str) -> bool:
        return await self.head(key) is not None

    def close(self) -> None:
        """Release client resources (no-op by default)."""
