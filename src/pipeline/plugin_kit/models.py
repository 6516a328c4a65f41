# src/pipeline/plugin_kit/models.py — v2
"""Agent plugin models: StageContext, AgentMetadata, AgentOutput."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field

from manuscript_pipeline.llm.retry import RetryPolicy
from manuscript_pipeline.tracking.call_logger import CallLogger


@dataclass
class StageContext:
    """Everything a stage prompt may depend on.

    ``artifacts`` holds the parsed JSON of previously published kinds,
    keyed by kind; an agent reads only its declared dependencies.
    """

    manuscript_id: str
    report_id: str
    user_id: str
    title: str
    genre: str
    style_guide: str
    text: str
    word_count: int
    chapter_count: int
    artifacts: dict[str, dict[str, Any]] = field(default_factory=dict)
    call_logger: CallLogger | None = None
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)


class AgentMetadata(BaseModel):
    """Metadata about an agent execution, attached to every AgentOutput."""

    agent_name: str
    agent_version: str
    execution_time_ms: int
    llm_calls: int
    input_tokens: int
    output_tokens: int
    model: str | None = None
    prompt_hash: str | None = None

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens


class AgentOutput(BaseModel):
    """Standard return type for all BaseAgent.execute() calls."""

    data: dict[str, Any]
    metadata: AgentMetadata
    warnings: list[str] = Field(default_factory=list)
