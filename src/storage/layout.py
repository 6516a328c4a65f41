# src/storage/layout.py — v2
"""Object key conventions.

- ``{userId}/{manuscriptId}/{ISO8601}_{sanitizedName}``: raw manuscript
  (the "manuscript key").
- ``{manuscriptKey}-{kind}.json``: artifact blobs. The kind is
  percent-encoded, so distinct chapter names never share a blob.
"""

from __future__ import annotations

from datetime import datetime
from urllib.parse import quote

from manuscript_pipeline.core.clock import isoformat
from manuscript_pipeline.core.ids import sanitize_filename


def manuscript_prefix(user_id: str, manuscript_id: str) -> str:
    """Prefix shared by the raw manuscript and all of its artifacts."""
    return f"{user_id}/{manuscript_id}/"


def raw_manuscript_key(
    user_id: str, manuscript_id: str, uploaded_at: datetime, filename: str
) -> str:
    """Storage key for the raw upload."""
    return (
        f"{manuscript_prefix(user_id, manuscript_id)}"
        f"{isoformat(uploaded_at)}_{sanitize_filename(filename)}"
    )


def artifact_key(manuscript_key: str, kind: str) -> str:
    """Storage key for one artifact kind of a manuscript."""
    return f"{manuscript_key}-{quote(kind, safe='-')}.json"


def owner_of(manuscript_key: str) -> tuple[str, str]:
    """Split a manuscript key into (user_id, manuscript_id)."""
    parts = manuscript_key.split("/", 2)
    if len(parts) < 3:
        raise ValueError(f"Not a manuscript key: {manuscript_key!r}")
    return parts[0], parts[1]
