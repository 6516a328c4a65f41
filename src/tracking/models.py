# src/tracking/models.py — v1
"""Tracking domain models: LLMCallRecord, StageCost, ModelPricing."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class LLMCallRecord(BaseModel):
    """Individual LLM API call log entry."""

    call_id: str
    timestamp: datetime
    report_id: str | None = None
    stage: str
    provider: str
    model: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    latency_ms: int
    status: Literal["success", "failed"] = "success"
    estimated_cost_usd: float = 0.0


class StageCost(BaseModel):
    """Aggregated cost of every call made for one stage."""

    stage: str
    model: str | None = None
    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0


class ModelPricing(BaseModel):
    """LLM model pricing per 1M tokens; input and output priced independently."""

    model: str
    input_price_per_1m: float
    output_price_per_1m: float
