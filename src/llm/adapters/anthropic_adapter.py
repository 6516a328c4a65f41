# src/llm/adapters/anthropic_adapter.py — v1
"""Anthropic Claude adapter implementing BaseLLMClient.

Uses the official anthropic SDK. Each call carries a hard deadline
(asyncio.wait_for) and SDK exceptions are mapped onto the domain error
taxonomy so the retry wrapper can tell retriable from fatal failures.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from manuscript_pipeline.core.errors import (
    LlmAuthError,
    LlmRateLimited,
    LlmRequestError,
    LlmServerError,
    LlmTimeout,
)
from manuscript_pipeline.llm.base_client import BaseLLMClient
from manuscript_pipeline.llm.models import LLMResponse, Message

logger = logging.getLogger(__name__)


class AnthropicAdapter(BaseLLMClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        deadline_s: float = 120.0,
        client: Any = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._deadline_s = deadline_s
        self.__client = client  # Lazy initialization unless injected

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ImportError(
                    "anthropic package required: pip install anthropic"
                ) from e
            self.__client = anthropic.AsyncAnthropic(
                api_key=self._api_key or "",
                timeout=self._deadline_s,
                max_retries=0,  # retries are owned by llm/retry.py
            )
        return self.__client

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.3,
    ) -> LLMResponse:
        """Text completion via Anthropic Messages API."""
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
        }
        if system:
            kwargs["system"] = system

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(**kwargs), timeout=self._deadline_s
            )
        except asyncio.TimeoutError as exc:
            raise LlmTimeout(
                f"model call exceeded {self._deadline_s:.0f}s deadline"
            ) from exc
        except Exception as exc:
            raise translate_error(exc) from exc
        latency_ms = int((time.monotonic() - start) * 1000)

        return LLMResponse(
            content=_extract_text(response),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=getattr(response, "model", None) or self._model,
            provider="anthropic",
            latency_ms=latency_ms,
            raw_response=response,
        )


def translate_error(exc: Exception) -> Exception:
    """Map an anthropic SDK exception onto the domain taxonomy.

    Unknown exceptions are returned unchanged.
    """
    import anthropic

    if isinstance(exc, anthropic.APITimeoutError):
        return LlmTimeout("model call timed out")
    if isinstance(exc, anthropic.RateLimitError):
        return LlmRateLimited("model provider rate limit reached")
    if isinstance(exc, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return LlmAuthError("model provider rejected the credentials")
    if isinstance(exc, anthropic.APIStatusError):
        if exc.status_code >= 500:
            return LlmServerError(f"model provider error ({exc.status_code})")
        return LlmRequestError(f"model provider rejected the request ({exc.status_code})")
    if isinstance(exc, anthropic.APIConnectionError):
        return LlmServerError("could not reach the model provider")
    return exc


def _extract_text(response: Any) -> str:
    """Concatenate text blocks from an Anthropic response."""
    parts = [
        block.text
        for block in response.content
        if getattr(block, "type", None) == "text"
    ]
    return "".join(parts)
