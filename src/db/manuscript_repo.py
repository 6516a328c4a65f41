# src/db/manuscript_repo.py — v1
"""Typed queries over the ``manuscripts`` table.

State writes go through ManuscriptStateMachine; ``set_status`` and
``set_status_statement`` are only called from there.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any

from manuscript_pipeline.core.clock import Clock, isoformat
from manuscript_pipeline.core.errors import InvalidRequest
from manuscript_pipeline.core.models import Manuscript
from manuscript_pipeline.db.database import BaseDatabase, Statement

_COLUMNS = (
    "id, user_id, title, original_filename, storage_key, file_hash, file_type, "
    "status, genre, word_count, metadata, flagged_for_review, uploaded_at, updated_at"
)


def encode_cursor(manuscript: Manuscript) -> str:
    """Opaque cursor over ``(uploaded_at, id)``."""
    raw = json.dumps([isoformat(manuscript.uploaded_at), manuscript.id]).encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def decode_cursor(cursor: str) -> tuple[str, str]:
    padded = cursor + "=" * (-len(cursor) % 4)
    try:
        uploaded_at, manuscript_id = json.loads(base64.urlsafe_b64decode(padded))
    except (binascii.Error, ValueError, TypeError) as e:
        raise InvalidRequest("Invalid pagination cursor") from e
    return str(uploaded_at), str(manuscript_id)


def _row_to_manuscript(row: dict[str, Any]) -> Manuscript:
    data = dict(row)
    data["metadata"] = json.loads(data["metadata"]) if data.get("metadata") else {}
    data["flagged_for_review"] = bool(data.get("flagged_for_review"))
    return Manuscript.model_validate(data)


class ManuscriptRepository:
    """Reads and writes manuscript rows."""

    def __init__(self, db: BaseDatabase, clock: Clock) -> None:
        self._db = db
        self._clock = clock

    async def insert(self, manuscript: Manuscript) -> None:
        await self._db.prepare(
            f"INSERT INTO manuscripts ({_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
        ).bind(
            manuscript.id,
            manuscript.user_id,
            manuscript.title,
            manuscript.original_filename,
            manuscript.storage_key,
            manuscript.file_hash,
            manuscript.file_type,
            manuscript.status,
            manuscript.genre,
            manuscript.word_count,
            json.dumps(manuscript.metadata),
            int(manuscript.flagged_for_review),
            isoformat(manuscript.uploaded_at),
            isoformat(manuscript.updated_at),
        ).run()

    async def get(self, manuscript_id: str) -> Manuscript | None:
        row = await self._db.prepare(
            f"SELECT {_COLUMNS} FROM manuscripts WHERE id = ?"
        ).bind(manuscript_id).first()
        return _row_to_manuscript(row) if row else None

    async def get_owned(self, user_id: str, manuscript_id: str) -> Manuscript | None:
        """Manuscript only if ``user_id`` owns it; other tenants see nothing."""
        row = await self._db.prepare(
            f"SELECT {_COLUMNS} FROM manuscripts WHERE id = ? AND user_id = ?"
        ).bind(manuscript_id, user_id).first()
        return _row_to_manuscript(row) if row else None

    async def find_duplicate(self, user_id: str, file_hash: str) -> str | None:
        """Oldest manuscript of the same owner with identical content."""
        row = await self._db.prepare(
            "SELECT id FROM manuscripts WHERE user_id = ? AND file_hash = ? "
            "ORDER BY uploaded_at ASC LIMIT 1"
        ).bind(user_id, file_hash).first()
        return row["id"] if row else None

    async def set_status(self, manuscript_id: str, status: str) -> None:
        await self.set_status_statement(manuscript_id, status).run()

    def set_status_statement(self, manuscript_id: str, status: str) -> Statement:
        return self._db.prepare(
            "UPDATE manuscripts SET status = ?, updated_at = ? WHERE id = ?"
        ).bind(status, isoformat(self._clock.now()), manuscript_id)

    async def list_page(
        self,
        user_id: str,
        status: str | None = None,
        genre: str | None = None,
        cursor: str | None = None,
        limit: int = 20,
    ) -> tuple[list[Manuscript], str | None]:
        """One page ordered ``uploaded_at DESC, id DESC``.

        Returns:
            The manuscripts and the cursor of the next page (None on the last).
        """
        clauses = ["user_id = ?"]
        params: list[Any] = [user_id]
        if status:
            clauses.append("status = ?")
            params.append(status)
        if genre:
            clauses.append("genre = ?")
            params.append(genre)
        if cursor:
            uploaded_at, last_id = decode_cursor(cursor)
            clauses.append("(uploaded_at < ? OR (uploaded_at = ? AND id < ?))")
            params.extend([uploaded_at, uploaded_at, last_id])

        rows = await self._db.prepare(
            f"SELECT {_COLUMNS} FROM manuscripts WHERE {' AND '.join(clauses)} "
            "ORDER BY uploaded_at DESC, id DESC LIMIT ?"
        ).bind(*params, limit + 1).all()

        items = [_row_to_manuscript(r) for r in rows[:limit]]
        next_cursor = encode_cursor(items[-1]) if len(rows) > limit else None
        return items, next_cursor
