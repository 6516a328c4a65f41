# src/db/audit_repo.py — v1
"""Advisory audit trail. Write failures are logged, never raised."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from manuscript_pipeline.core.clock import Clock, isoformat
from manuscript_pipeline.db.database import BaseDatabase

logger = logging.getLogger(__name__)


class AuditLog:
    def __init__(self, db: BaseDatabase, clock: Clock) -> None:
        self._db = db
        self._clock = clock

    async def record(
        self,
        action: str,
        resource_type: str,
        resource_id: str | None,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Append one entry. Returns False if the write failed."""
        try:
            await self._db.prepare(
                "INSERT INTO audit_log (id, user_id, action, resource_type, resource_id, "
                "timestamp, metadata) VALUES (?, ?, ?, ?, ?, ?, ?)"
            ).bind(
                str(uuid.uuid4()),
                user_id,
                action,
                resource_type,
                resource_id,
                isoformat(self._clock.now()),
                json.dumps(metadata) if metadata else None,
            ).run()
        except Exception as e:
            logger.warning("Audit entry %s %s/%s not recorded: %s", action, resource_type, resource_id, e)
            return False
        return True

    async def entries(self, resource_type: str, resource_id: str) -> list[dict[str, Any]]:
        rows = await self._db.prepare(
            "SELECT user_id, action, resource_type, resource_id, timestamp, metadata "
            "FROM audit_log WHERE resource_type = ? AND resource_id = ? ORDER BY timestamp"
        ).bind(resource_type, resource_id).all()
        for row in rows:
            row["metadata"] = json.loads(row["metadata"]) if row.get("metadata") else {}
        return rows
