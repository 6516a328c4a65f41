# src/db/artifact_index.py — v1
"""Relational index of published artifacts.

The index is authoritative for "is this stage done": a blob without an
index row is invisible, and a row always points at a blob written first.
"""

from __future__ import annotations

from typing import Any

from manuscript_pipeline.core.clock import isoformat
from manuscript_pipeline.core.models import ArtifactRecord
from manuscript_pipeline.db.database import BaseDatabase

_COLUMNS = (
    "manuscript_id, kind, version, report_id, storage_key, size_bytes, cost_usd, "
    "input_tokens, output_tokens, model, created_at"
)


def _row_to_record(row: dict[str, Any]) -> ArtifactRecord:
    return ArtifactRecord.model_validate(dict(row))


class ArtifactIndex:
    """Latest version of each (manuscript, kind)."""

    def __init__(self, db: BaseDatabase) -> None:
        self._db = db

    async def get(self, manuscript_id: str, kind: str) -> ArtifactRecord | None:
        row = await self._db.prepare(
            f"SELECT {_COLUMNS} FROM manuscript_artifacts WHERE manuscript_id = ? AND kind = ?"
        ).bind(manuscript_id, kind).first()
        return _row_to_record(row) if row else None

    async def list(self, manuscript_id: str) -> list[ArtifactRecord]:
        rows = await self._db.prepare(
            f"SELECT {_COLUMNS} FROM manuscript_artifacts WHERE manuscript_id = ? ORDER BY kind"
        ).bind(manuscript_id).all()
        return [_row_to_record(r) for r in rows]

    async def published_by(self, manuscript_id: str, report_id: str) -> set[str]:
        """Kinds whose latest version was produced by ``report_id``."""
        rows = await self._db.prepare(
            "SELECT kind FROM manuscript_artifacts WHERE manuscript_id = ? AND report_id = ?"
        ).bind(manuscript_id, report_id).all()
        return {r["kind"] for r in rows}

    async def upsert_published(self, record: ArtifactRecord) -> ArtifactRecord:
        """Insert version 1, or bump the version unless the same job republishes.

        Returns:
            The stored row.
        """
        await self._db.prepare(
            f"INSERT INTO manuscript_artifacts ({_COLUMNS}) "
            "VALUES (?, ?, 1, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT (manuscript_id, kind) DO UPDATE SET "
            "version = CASE WHEN manuscript_artifacts.report_id = excluded.report_id "
            "THEN manuscript_artifacts.version ELSE manuscript_artifacts.version + 1 END, "
            "report_id = excluded.report_id, storage_key = excluded.storage_key, "
            "size_bytes = excluded.size_bytes, cost_usd = excluded.cost_usd, "
            "input_tokens = excluded.input_tokens, output_tokens = excluded.output_tokens, "
            "model = excluded.model, created_at = excluded.created_at"
        ).bind(
            record.manuscript_id,
            record.kind,
            record.report_id,
            record.storage_key,
            record.size_bytes,
            record.cost_usd,
            record.input_tokens,
            record.output_tokens,
            record.model,
            isoformat(record.created_at),
        ).run()
        stored = await self.get(record.manuscript_id, record.kind)
        assert stored is not None
        return stored
