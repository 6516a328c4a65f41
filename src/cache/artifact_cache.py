# src/cache/artifact_cache.py — v1
"""Read-through cache over manuscripts, the artifact index and blobs.

The cache is advisory: every backend error is logged and the read falls
through to the relational store or object store, so a cold or broken
cache still yields correct answers. Invalidation is called after every
mutation that changes what a view would return.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

from manuscript_pipeline.cache import keys
from manuscript_pipeline.cache.base_cache_store import BaseCacheStore
from manuscript_pipeline.core.models import ArtifactRecord, Manuscript
from manuscript_pipeline.db.artifact_index import ArtifactIndex
from manuscript_pipeline.db.job_repo import JobRepository
from manuscript_pipeline.db.manuscript_repo import ManuscriptRepository
from manuscript_pipeline.status.tracker import StatusTracker
from manuscript_pipeline.storage.base_object_store import BaseObjectStore

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20


class ArtifactCache:
    """User-scoped cached views; all reads verify ownership first."""

    def __init__(
        self,
        store: BaseCacheStore,
        manuscripts: ManuscriptRepository,
        artifacts: ArtifactIndex,
        jobs: JobRepository,
        status: StatusTracker,
        objects: BaseObjectStore,
        ttls: dict[str, int],
    ) -> None:
        self._store = store
        self._manuscripts = manuscripts
        self._artifacts = artifacts
        self._jobs = jobs
        self._status = status
        self._objects = objects
        self._ttls = ttls

    # --- advisory cache access ---

    async def _cached(self, key: str) -> Any | None:
        try:
            return await self._store.get(key)
        except Exception as e:
            logger.warning("Cache read %s failed, using source: %s", key, e)
            return None

    async def _remember(self, key: str, value: Any, view: str) -> None:
        try:
            await self._store.set(key, value, ttl=self._ttls[view])
        except Exception as e:
            logger.warning("Cache write %s failed: %s", key, e)

    async def _forget(self, key: str, prefix: bool = False) -> None:
        try:
            if prefix:
                await self._store.delete_prefix(key)
            else:
                await self._store.delete(key)
        except Exception as e:
            logger.warning("Cache invalidation %s failed: %s", key, e)

    # --- views ---

    async def manuscript(self, user_id: str, manuscript_id: str) -> Manuscript | None:
        key = keys.manuscript_key(user_id, manuscript_id)
        cached = await self._cached(key)
        if cached is not None:
            return Manuscript.model_validate(cached)
        manuscript = await self._manuscripts.get_owned(user_id, manuscript_id)
        if manuscript is not None:
            await self._remember(key, manuscript.model_dump(mode="json"), "manuscript")
        return manuscript

    async def list_kinds(self, user_id: str, manuscript_id: str) -> dict[str, ArtifactRecord]:
        """Latest index row per kind; empty for manuscripts the user does not own."""
        if await self.manuscript(user_id, manuscript_id) is None:
            return {}
        key = keys.artifact_kinds_key(user_id, manuscript_id)
        cached = await self._cached(key)
        if cached is not None:
            return {k: ArtifactRecord.model_validate(v) for k, v in cached.items()}
        records = {r.kind: r for r in await self._artifacts.list(manuscript_id)}
        await self._remember(
            key, {k: r.model_dump(mode="json") for k, r in records.items()}, "manuscript"
        )
        return records

    async def get_artifact(self, user_id: str, manuscript_id: str, kind: str) -> bytes | None:
        if await self.manuscript(user_id, manuscript_id) is None:
            return None
        key = keys.artifact_key(user_id, manuscript_id, kind)
        cached = await self._cached(key)
        if cached is not None:
            return base64.b64decode(cached)

        record = await self._artifacts.get(manuscript_id, kind)
        if record is None:
            return None
        body = await self._objects.get(record.storage_key)
        if body is None:
            logger.error("Index row %s/%s points at missing blob %s", manuscript_id, kind, record.storage_key)
            return None
        await self._remember(key, base64.b64encode(body).decode("ascii"), "manuscript")
        return body

    async def analysis_status(self, user_id: str, manuscript_id: str) -> dict[str, Any] | None:
        """Manuscript state, latest job progress and produced kinds."""
        key = keys.analysis_status_key(user_id, manuscript_id)
        cached = await self._cached(key)
        if cached is not None:
            return cached

        manuscript = await self.manuscript(user_id, manuscript_id)
        if manuscript is None:
            return None
        history = await self._jobs.history(manuscript_id)
        latest = history[-1] if history else None
        job_status = await self._status.get(latest.report_id) if latest else None
        view = {
            "manuscriptId": manuscript_id,
            "status": manuscript.status,
            "reportId": latest.report_id if latest else None,
            "pipeline": latest.pipeline if latest else None,
            "job": job_status.public_view() if job_status else None,
            "artifacts": sorted((await self.list_kinds(user_id, manuscript_id)).keys()),
        }
        await self._remember(key, view, "analysis_status")
        return view

    async def list_manuscripts(
        self,
        user_id: str,
        status: str | None = None,
        genre: str | None = None,
        cursor: str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> dict[str, Any]:
        """One page of the user's manuscripts, newest first.

        Only the first page at the default size is cached; later pages go
        straight to the relational store.
        """
        cacheable = cursor is None and limit == DEFAULT_PAGE_SIZE
        key = keys.list_key(user_id, status, genre)
        if cacheable:
            cached = await self._cached(key)
            if cached is not None:
                return cached

        items, next_cursor = await self._manuscripts.list_page(user_id, status, genre, cursor, limit)
        page = {
            "items": [m.model_dump(mode="json") for m in items],
            "nextCursor": next_cursor,
        }
        if cacheable:
            await self._remember(key, page, "list")
        return page

    async def invalidate(self, user_id: str, manuscript_id: str, kinds: list[str] | None = None) -> None:
        """Drop every view a mutation of this manuscript could change.

        Args:
            kinds: Artifact kinds that changed; None drops all of them.
        """
        if kinds is None:
            await self._forget(keys.artifact_prefix(user_id, manuscript_id), prefix=True)
        else:
            for kind in kinds:
                await self._forget(keys.artifact_key(user_id, manuscript_id, kind))
        await self._forget(keys.artifact_kinds_key(user_id, manuscript_id))
        await self._forget(keys.analysis_status_key(user_id, manuscript_id))
        await self._forget(keys.manuscript_key(user_id, manuscript_id))
        await self._forget(keys.list_prefix(user_id), prefix=True)
