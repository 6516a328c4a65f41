# src/db/cost_ledger.py — v1
"""Per-stage LLM cost rows in ``cost_tracking``."""

from __future__ import annotations

import json
import logging
import uuid

from manuscript_pipeline.core.clock import Clock, isoformat
from manuscript_pipeline.db.database import BaseDatabase
from manuscript_pipeline.tracking.models import StageCost

logger = logging.getLogger(__name__)

COST_CENTER = "ai_pipeline"


class CostLedger:
    def __init__(self, db: BaseDatabase, clock: Clock) -> None:
        self._db = db
        self._clock = clock

    async def record(
        self,
        stage_cost: StageCost,
        user_id: str,
        manuscript_id: str,
        report_id: str,
        model: str | None,
        pipeline: str,
    ) -> None:
        await self._db.prepare(
            "INSERT INTO cost_tracking (id, user_id, manuscript_id, report_id, cost_center, "
            "feature_name, operation, cost_usd, tokens_input, tokens_output, model, metadata, "
            "created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
        ).bind(
            str(uuid.uuid4()),
            user_id,
            manuscript_id,
            report_id,
            COST_CENTER,
            stage_cost.stage,
            pipeline,
            stage_cost.cost_usd,
            stage_cost.input_tokens,
            stage_cost.output_tokens,
            model,
            json.dumps({"calls": stage_cost.calls}),
            isoformat(self._clock.now()),
        ).run()
        logger.debug("Cost row %s/%s: $%.6f", report_id, stage_cost.stage, stage_cost.cost_usd)

    async def total_for_report(self, report_id: str) -> float:
        row = await self._db.prepare(
            "SELECT COALESCE(SUM(cost_usd), 0) AS total FROM cost_tracking WHERE report_id = ?"
        ).bind(report_id).first()
        return float(row["total"]) if row else 0.0
