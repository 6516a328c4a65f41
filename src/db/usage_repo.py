# src/db/usage_repo.py — v1
"""Quota view and append-only usage events.

Subscriptions are written by the external billing collaborator; this
module only reads them (``save_subscription`` exists for operators and
tests). Every successful pipeline run debits exactly one credit, guarded
by the unique ``report_id`` column.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from manuscript_pipeline.core.clock import Clock, isoformat
from manuscript_pipeline.core.models import Quota, UsageEvent
from manuscript_pipeline.db.database import BaseDatabase, Statement

logger = logging.getLogger(__name__)

ACTIVE_SUBSCRIPTION_STATES = ("active", "trialing", "past_due")


def calendar_month(now: datetime) -> tuple[datetime, datetime]:
    """Billing period used for users without a subscription."""
    start = now.astimezone(timezone.utc).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


class UsageRepository:
    """Reads quotas and records usage events."""

    def __init__(self, db: BaseDatabase, clock: Clock, plan_limits: dict[str, int]) -> None:
        self._db = db
        self._clock = clock
        self._plan_limits = plan_limits

    async def quota(self, user_id: str) -> Quota:
        """Current plan, limit and credits used in the current period."""
        subscription = await self._db.prepare(
            "SELECT id, plan_type, current_period_start, current_period_end "
            "FROM subscriptions WHERE user_id = ? AND status IN (?, ?, ?) "
            "ORDER BY current_period_end DESC LIMIT 1"
        ).bind(user_id, *ACTIVE_SUBSCRIPTION_STATES).first()

        if subscription:
            plan_type = subscription["plan_type"]
            subscription_id = subscription["id"]
            period_start = _parse_ts(subscription["current_period_start"])
            period_end = _parse_ts(subscription["current_period_end"])
        else:
            plan_type = "free"
            subscription_id = None
            period_start, period_end = calendar_month(self._clock.now())

        used = await self.used_in_period(user_id, period_start)
        return Quota(
            plan_type=plan_type,
            plan_limit=self._plan_limits.get(plan_type, self._plan_limits["free"]),
            used_this_period=used,
            period_start=period_start,
            period_end=period_end,
            subscription_id=subscription_id,
        )

    async def used_in_period(self, user_id: str, period_start: datetime) -> int:
        row = await self._db.prepare(
            "SELECT COALESCE(SUM(credits_used), 0) AS used FROM usage_tracking "
            "WHERE user_id = ? AND billing_period_start = ?"
        ).bind(user_id, isoformat(period_start)).first()
        return int(row["used"]) if row else 0

    def record_usage_statement(self, event: UsageEvent, assets: list[str] | None = None) -> Statement:
        """INSERT that is a no-op when ``report_id`` already has a usage row."""
        return self._db.prepare(
            "INSERT INTO usage_tracking (id, user_id, subscription_id, manuscript_id, report_id, "
            "analysis_type, assets_generated, credits_used, timestamp, billing_period_start, "
            "billing_period_end) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT (report_id) DO NOTHING"
        ).bind(
            event.id or str(uuid.uuid4()),
            event.user_id,
            event.subscription_id,
            event.manuscript_id,
            event.report_id,
            event.analysis_type,
            ",".join(assets) if assets else None,
            event.credits_used,
            isoformat(event.timestamp),
            isoformat(event.billing_period_start),
            isoformat(event.billing_period_end),
        )

    async def events_for_report(self, report_id: str) -> list[UsageEvent]:
        rows = await self._db.prepare(
            "SELECT id, user_id, subscription_id, manuscript_id, report_id, analysis_type, "
            "credits_used, timestamp, billing_period_start, billing_period_end "
            "FROM usage_tracking WHERE report_id = ?"
        ).bind(report_id).all()
        return [UsageEvent.model_validate(r) for r in rows]

    async def save_subscription(
        self,
        user_id: str,
        plan_type: str,
        period_start: datetime,
        period_end: datetime,
        status: str = "active",
        subscription_id: str | None = None,
    ) -> str:
        subscription_id = subscription_id or f"sub_{uuid.uuid4().hex[:16]}"
        now = isoformat(self._clock.now())
        await self._db.prepare(
            "INSERT INTO subscriptions (id, user_id, plan_type, status, current_period_start, "
            "current_period_end, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT (id) DO UPDATE SET plan_type = excluded.plan_type, "
            "status = excluded.status, current_period_start = excluded.current_period_start, "
            "current_period_end = excluded.current_period_end, updated_at = excluded.updated_at"
        ).bind(
            subscription_id,
            user_id,
            plan_type,
            status,
            isoformat(period_start),
            isoformat(period_end),
            now,
            now,
        ).run()
        logger.info("Saved %s subscription %s for user %s", plan_type, subscription_id, user_id)
        return subscription_id
