# src/pipeline/publisher.py — v1
"""Two-phase artifact publication.

1. Blob write to ``{manuscriptKey}-{kind}.json``.
2. Index upsert in ``manuscript_artifacts`` (the authoritative record),
   then cache invalidation for the kind and the owner's aggregate views.

Writing the same artifact twice leaves the same final state: the blob is
overwritten with identical bytes and the index keeps its version when the
same report_id republishes.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any

from manuscript_pipeline.cache.artifact_cache import ArtifactCache
from manuscript_pipeline.core.clock import Clock
from manuscript_pipeline.core.models import ArtifactRecord
from manuscript_pipeline.db.artifact_index import ArtifactIndex
from manuscript_pipeline.storage.base_object_store import BaseObjectStore
from manuscript_pipeline.storage.layout import artifact_key
from manuscript_pipeline.tracking.models import StageCost

logger = logging.getLogger(__name__)


def encode_artifact(payload: Any) -> bytes:
    """Serialize an artifact body as JSON; raw bytes are wrapped as base64."""
    if isinstance(payload, (bytes, bytearray)):
        payload = {"encoding": "base64", "data": base64.b64encode(bytes(payload)).decode("ascii")}
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2).encode("utf-8")


def decode_artifact(blob: bytes) -> Any:
    """Inverse of encode_artifact for JSON bodies (base64 wrappers are returned as is)."""
    return json.loads(blob.decode("utf-8"))


class ArtifactPublisher:
    def __init__(
        self,
        objects: BaseObjectStore,
        artifacts: ArtifactIndex,
        cache: ArtifactCache,
        clock: Clock,
    ) -> None:
        self._objects = objects
        self._artifacts = artifacts
        self._cache = cache
        self._clock = clock

    async def publish(
        self,
        user_id: str,
        manuscript_id: str,
        manuscript_key: str,
        kind: str,
        payload: Any,
        report_id: str | None = None,
        cost: StageCost | None = None,
    ) -> ArtifactRecord:
        """Write the blob, then the index row, then drop cached views.

        Raises:
            ObjectStoreUnavailable: Blob write failed; the index is untouched.
        """
        key = artifact_key(manuscript_key, kind)
        body = encode_artifact(payload)
        await self._objects.put(
            key,
            body,
            metadata={"manuscriptId": manuscript_id, "kind": kind, "reportId": report_id or ""},
        )

        cost = cost or StageCost(stage=kind)
        record = await self._artifacts.upsert_published(
            ArtifactRecord(
                manuscript_id=manuscript_id,
                kind=kind,
                report_id=report_id,
                storage_key=key,
                size_bytes=len(body),
                cost_usd=cost.cost_usd,
                input_tokens=cost.input_tokens,
                output_tokens=cost.output_tokens,
                model=cost.model,
                created_at=self._clock.now(),
            )
        )
        await self._cache.invalidate(user_id, manuscript_id, [kind])
        logger.info(
            "Published %s for manuscript %s (v%d, %d bytes, $%.6f)",
            kind, manuscript_id, record.version, record.size_bytes, record.cost_usd,
        )
        return record
