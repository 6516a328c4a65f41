# src/storage/models.py — v1
"""Storage domain models: ObjectInfo."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ObjectInfo(BaseModel):
    """Listing entry for one stored object."""

    key: str
    size: int
    last_modified: datetime | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
