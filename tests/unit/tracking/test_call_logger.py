# tests/unit/tracking/test_call_logger.py — v2
"""Tests for tracking/call_logger.py and tracking/cost_calculator.py."""

from __future__ import annotations

import pytest

from manuscript_pipeline.llm.models import LLMResponse
from manuscript_pipeline.tracking.call_logger import CallLogger
from manuscript_pipeline.tracking.cost_calculator import compute_cost, compute_stage_costs


def _response(model: str = "claude-sonnet-4-20250514", inp: int = 1000, out: int = 200) -> LLMResponse:
    return LLMResponse(
        content="{}", input_tokens=inp, output_tokens=out, model=model, provider="anthropic", latency_ms=10
    )


class TestComputeCost:
    def test_known_model(self):
        # 1M input at $3 + 1M output at $15
        assert compute_cost("claude-sonnet-4-20250514", 1_000_000, 1_000_000) == pytest.approx(18.0)

    def test_unknown_model_is_free(self):
        assert compute_cost("local-model", 5000, 5000) == 0.0


class TestCallLogger:
    def test_stage_cost_aggregates_calls(self):
        logger = CallLogger("rep12345")
        logger.record("keywords", _response())
        logger.record("keywords", _response(inp=500, out=100))
        logger.record("categories", _response())

        cost = logger.stage_cost("keywords")
        assert cost.calls == 2
        assert cost.input_tokens == 1500
        assert cost.output_tokens == 300
        assert cost.model == "claude-sonnet-4-20250514"
        assert cost.cost_usd == pytest.approx(1500 * 3 / 1e6 + 300 * 15 / 1e6)
        assert logger.total_calls == 3

    def test_stage_without_calls(self):
        cost = CallLogger().stage_cost("author-bio")
        assert cost.calls == 0
        assert cost.cost_usd == 0.0

    def test_records_carry_report_id(self):
        logger = CallLogger("rep12345")
        record = logger.record("developmental", _response())
        assert record.report_id == "rep12345"
        assert compute_stage_costs(logger.records)["developmental"].calls == 1
