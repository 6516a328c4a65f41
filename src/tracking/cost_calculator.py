# src/tracking/cost_calculator.py — v1
"""Cost calculation from LLM call records.

Computes USD cost per call and per stage from published per-million-token
rates keyed by model id.
"""

from __future__ import annotations

from collections import defaultdict

from manuscript_pipeline.tracking.models import LLMCallRecord, ModelPricing, StageCost

# Default pricing per 1M tokens
DEFAULT_PRICING: dict[str, ModelPricing] = {
    "claude-sonnet-4-20250514": ModelPricing(
        model="claude-sonnet-4-20250514",
        input_price_per_1m=3.0, output_price_per_1m=15.0,
    ),
    "claude-sonnet-4-5-20250929": ModelPricing(
        model="claude-sonnet-4-5-20250929",
        input_price_per_1m=3.0, output_price_per_1m=15.0,
    ),
    "claude-opus-4-20250514": ModelPricing(
        model="claude-opus-4-20250514",
        input_price_per_1m=15.0, output_price_per_1m=75.0,
    ),
    "claude-haiku-4-5-20251001": ModelPricing(
        model="claude-haiku-4-5-20251001",
        input_price_per_1m=1.0, output_price_per_1m=5.0,
    ),
    "claude-3-5-haiku-20241022": ModelPricing(
        model="claude-3-5-haiku-20241022",
        input_price_per_1m=0.80, output_price_per_1m=4.0,
    ),
}


def compute_cost(
    model: str,
    input_tokens: int,
    output_tokens: int,
    pricing: dict[str, ModelPricing] | None = None,
) -> float:
    """USD cost of one call; unknown models cost 0.0."""
    pricing = pricing or DEFAULT_PRICING
    p = pricing.get(model)
    if p is None:
        return 0.0
    return (input_tokens * p.input_price_per_1m / 1_000_000
            + output_tokens * p.output_price_per_1m / 1_000_000)


def compute_call_cost(record: LLMCallRecord, pricing: dict[str, ModelPricing] | None = None) -> float:
    """Compute estimated cost for a single LLM call in USD."""
    return compute_cost(record.model, record.input_tokens, record.output_tokens, pricing)


def compute_stage_costs(
    records: list[LLMCallRecord],
    pricing: dict[str, ModelPricing] | None = None,
) -> dict[str, StageCost]:
    """Aggregate call records per stage."""
    by_stage: dict[str, list[LLMCallRecord]] = defaultdict(list)
    for r in records:
        by_stage[r.stage].append(r)

    result: dict[str, StageCost] = {}
    for stage, stage_records in by_stage.items():
        result[stage] = StageCost(
            stage=stage,
            model=stage_records[-1].model,
            calls=len(stage_records),
            input_tokens=sum(r.input_tokens for r in stage_records),
            output_tokens=sum(r.output_tokens for r in stage_records),
            cost_usd=sum(compute_call_cost(r, pricing) for r in stage_records),
        )
    return result


def compute_total_cost(
    records: list[LLMCallRecord],
    pricing: dict[str, ModelPricing] | None = None,
) -> float:
    """Compute total estimated cost across all records."""
    return sum(compute_call_cost(r, pricing) for r in records)
