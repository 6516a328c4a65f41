# src/llm/base_client.py — v1
"""Abstract LLM client interface.

Adapters translate provider exceptions into the domain taxonomy
(LlmTimeout, LlmRateLimited, LlmServerError, LlmAuthError,
LlmRequestError) so the retry wrapper never sees SDK types.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from manuscript_pipeline.llm.models import LLMResponse, Message


class BaseLLMClient(ABC):
    """Unified interface for LLM providers."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.3,
    ) -> LLMResponse:
        """Text completion."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (anthropic)."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Model id used for pricing lookups."""
