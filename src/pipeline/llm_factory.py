# src/pipeline/llm_factory.py — v2
"""LLM factory: one client per model, resolved per stage.

A stage uses ``llm_stage_models[stage]`` when configured, otherwise
``llm_model``. Clients are cached by model id so stages sharing a model
reuse a single client instance.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from manuscript_pipeline.llm.retry import RetryPolicy

if TYPE_CHECKING:
    from manuscript_pipeline.config.settings import Settings
    from manuscript_pipeline.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)


class LLMFactory:
    """Create and cache LLM clients per stage."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._clients: dict[str, BaseLLMClient] = {}

    def model_for(self, stage: str) -> str:
        return self._settings.llm_stage_models.get(stage, self._settings.llm_model)

    def get_client(self, stage: str) -> BaseLLMClient:
        model = self.model_for(stage)
        if model not in self._clients:
            self._clients[model] = self._create_client(model)
            logger.info("Created LLM client for '%s': %s", stage, model)
        return self._clients[model]

    def __call__(self, stage: str) -> BaseLLMClient:
        """Callable interface used by the stage runner."""
        return self.get_client(stage)

    def retry_policy(self) -> RetryPolicy:
        s = self._settings
        return RetryPolicy(
            max_attempts=s.llm_retry_max_attempts,
            base_delay_s=s.llm_retry_base_delay_s,
            backoff_factor=s.llm_retry_backoff_factor,
            jitter=s.llm_retry_jitter,
        )

    def _create_client(self, model: str) -> BaseLLMClient:
        """Instantiate the Anthropic adapter (lazy import)."""
        from manuscript_pipeline.llm.adapters.anthropic_adapter import AnthropicAdapter

        return AnthropicAdapter(
            model=model,
            api_key=self._settings.claude_api_key,
            deadline_s=self._settings.llm_deadline_seconds,
        )
