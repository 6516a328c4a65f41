# src/tracking/call_logger.py — v1
"""LLM call logging: records every call of a job for cost accounting."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from manuscript_pipeline.llm.models import LLMResponse
from manuscript_pipeline.tracking.cost_calculator import (
    compute_call_cost,
    compute_stage_costs,
)
from manuscript_pipeline.tracking.models import LLMCallRecord, ModelPricing, StageCost

logger = logging.getLogger(__name__)


class CallLogger:
    """Accumulates LLM call records during one job run."""

    def __init__(
        self,
        report_id: str | None = None,
        pricing: dict[str, ModelPricing] | None = None,
    ) -> None:
        self._report_id = report_id
        self._pricing = pricing
        self._records: list[LLMCallRecord] = []

    def record(self, stage: str, response: LLMResponse) -> LLMCallRecord:
        """Record a successful LLM call and price it."""
        record = LLMCallRecord(
            call_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            report_id=self._report_id,
            stage=stage,
            provider=response.provider,
            model=response.model,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            total_tokens=response.total_tokens,
            latency_ms=response.latency_ms,
        )
        record.estimated_cost_usd = compute_call_cost(record, self._pricing)
        self._records.append(record)
        logger.debug(
            "LLM call %s: %d in / %d out tokens, $%.6f",
            stage, record.input_tokens, record.output_tokens, record.estimated_cost_usd,
        )
        return record

    @property
    def records(self) -> list[LLMCallRecord]:
        """All recorded calls."""
        return list(self._records)

    def stage_cost(self, stage: str) -> StageCost:
        """Aggregated cost of one stage (zero if it made no calls)."""
        costs = compute_stage_costs(
            [r for r in self._records if r.stage == stage], self._pricing
        )
        return costs.get(stage, StageCost(stage=stage))

    @property
    def total_cost_usd(self) -> float:
        return sum(r.estimated_cost_usd for r in self._records)

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed across all calls."""
        return sum(r.total_tokens for r in self._records)

    @property
    def total_calls(self) -> int:
        """Total number of LLM calls."""
        return len(self._records)

