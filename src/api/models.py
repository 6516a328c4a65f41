# src/api/models.py — v2
"""API-level models returned by the service facade."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class JobTicket(BaseModel):
    """Handle for a queued (or already active) job."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    report_id: str
    manuscript_id: str
    pipeline: str
    status: str = "queued"
    reused: bool = False

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class QuotaView(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    plan_type: str
    plan_limit: int
    used_this_period: int
    remaining: int
    period_start: str
    period_end: str

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
