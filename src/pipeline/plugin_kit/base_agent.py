# src/pipeline/plugin_kit/base_agent.py — v2
"""Standard agent interface for pipeline stages.

An agent produces exactly one artifact kind (its ``name``). Prompt
construction is deterministic: the same context always yields the same
prompt text, so a retried stage sends an identical request.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

from manuscript_pipeline.llm.json_output import parse_json_object
from manuscript_pipeline.llm.models import LLMResponse, Message
from manuscript_pipeline.llm.retry import with_retry
from manuscript_pipeline.pipeline.plugin_kit.models import (
    AgentMetadata,
    AgentOutput,
    StageContext,
)

if TYPE_CHECKING:
    from manuscript_pipeline.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent.parent / "prompts"

SYSTEM_PROMPT = (
    "You are an experienced publishing professional working for independent authors. "
    "Respond only with valid JSON, with no text before or after it."
)

# Characters of manuscript text sent with a prompt (~100k tokens).
DEFAULT_MANUSCRIPT_CHARS = 400_000
DEPENDENCY_CHARS = 12_000


def truncate_for_analysis(text: str, max_chars: int) -> str:
    """Keep the opening and the ending of long manuscripts."""
    if len(text) <= max_chars:
        return text
    head = int(max_chars * 0.7)
    tail = max_chars - head
    return f"{text[:head]}\n\n[... middle of manuscript omitted ...]\n\n{text[-tail:]}"


class BaseAgent(ABC):
    """Standard interface for all pipeline agents."""

    temperature: float = 0.3
    max_tokens: int = 4096
    manuscript_chars: int = DEFAULT_MANUSCRIPT_CHARS

    def __init__(self) -> None:
        self._prompt_template: str | None = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Artifact kind this agent produces (e.g. 'developmental')."""

    @property
    @abstractmethod
    def version(self) -> str:
        """Agent version (semver)."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what this agent does."""

    @property
    def dependencies(self) -> list[str]:
        """Kinds whose artifacts the prompt reads; also the plan's edges."""
        return []

    @property
    def required_fields(self) -> list[str]:
        """Top-level keys the model's JSON object must contain."""
        return []

    @property
    def prompt_file(self) -> Path:
        return PROMPTS_DIR / f"{self.name}.txt"

    def _load_prompt(self) -> str:
        """Load and cache prompt template."""
        if self._prompt_template is None:
            self._prompt_template = self.prompt_file.read_text(encoding="utf-8")
        return self._prompt_template

    def prompt_variables(self, context: StageContext) -> dict[str, Any]:
        """Values substituted into the template. Override to add more."""
        return {
            "title": context.title,
            "genre": context.genre,
            "style_guide": context.style_guide,
            "word_count": context.word_count,
            "chapter_count": context.chapter_count,
            "manuscript": truncate_for_analysis(context.text, self.manuscript_chars),
            "prior_analysis": self._dependency_digest(context),
        }

    def _dependency_digest(self, context: StageContext) -> str:
        parts: list[str] = []
        for kind in self.dependencies:
            data = context.artifacts.get(kind)
            if data is None:
                continue
            body = json.dumps(data, sort_keys=True, ensure_ascii=False)
            parts.append(f"## {kind}\n{body[:DEPENDENCY_CHARS]}")
        return "\n\n".join(parts) or "(none)"

    def build_prompt(self, context: StageContext) -> str:
        return self._load_prompt().format(**self.prompt_variables(context))

    def validate_data(self, data: dict[str, Any]) -> None:
        """Stage-specific checks beyond required fields. Raise BadModelOutput."""

    async def execute(self, context: StageContext, llm: BaseLLMClient) -> AgentOutput:
        """Run the stage: one model call (with bounded retry), strict parsing.

        Raises:
            BadModelOutput: Response is not the expected JSON.
            LLMRetryExhausted: Transient provider errors on every attempt.
            LlmAuthError, LlmRequestError: Non-retriable provider errors.
        """
        start_ms = time.monotonic_ns() // 1_000_000
        prompt = self.build_prompt(context)
        prompt_hash = hashlib.sha256(prompt.encode()).hexdigest()[:16]

        response: LLMResponse = await with_retry(
            llm.complete,
            messages=[Message(role="user", content=prompt)],
            system=SYSTEM_PROMPT,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            stage=self.name,
            policy=context.retry_policy,
        )
        # Tokens are spent whether or not the output parses.
        if context.call_logger is not None:
            context.call_logger.record(self.name, response)

        data = parse_json_object(response.content, self.required_fields)
        self.validate_data(data)

        elapsed_ms = (time.monotonic_ns() // 1_000_000) - start_ms
        logger.info(
            "Agent '%s' produced %d fields in %dms (%d tokens)",
            self.name, len(data), elapsed_ms, response.total_tokens,
        )
        return AgentOutput(
            data=data,
            metadata=AgentMetadata(
                agent_name=self.name,
                agent_version=self.version,
                execution_time_ms=elapsed_ms,
                llm_calls=1,
                input_tokens=response.input_tokens,
                output_tokens=response.output_tokens,
                model=response.model,
                prompt_hash=prompt_hash,
            ),
        )
