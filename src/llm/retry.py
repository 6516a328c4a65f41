# src/llm/retry.py — v1
"""Bounded retry wrapper for model calls with exponential backoff.

Only transient provider errors (timeout, 5xx, 429) are retried; anything
else propagates immediately. When the attempt budget runs out the last
error is wrapped in LLMRetryExhausted, which the stage runner escalates
to StageFailed.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from manuscript_pipeline.core.errors import (
    LlmRateLimited,
    LlmServerError,
    LlmTimeout,
    TransientError,
)

logger = logging.getLogger(__name__)

RETRIABLE_ERRORS: tuple[type[Exception], ...] = (LlmTimeout, LlmRateLimited, LlmServerError)


class LLMRetryExhausted(TransientError):
    """All attempts exhausted for a retriable model error."""

    def __init__(self, stage: str, attempts: int, last_error: Exception):
        self.stage = stage
        self.attempts = attempts
        self.last_error = last_error
        reason = getattr(last_error, "message", None) or str(last_error)
        super().__init__(f"model call failed after {attempts} attempts: {reason}")


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters: delay = base * factor**n, scaled by 1 +/- jitter."""

    max_attempts: int = 3
    base_delay_s: float = 1.0
    backoff_factor: float = 2.0
    jitter: float = 0.25


def classify_error(error: Exception) -> str:
    """Classify an exception into a retry error type."""
    if isinstance(error, LlmRateLimited):
        return "rate_limit"
    if isinstance(error, LlmTimeout):
        return "timeout"
    if isinstance(error, LlmServerError):
        return "server_error"
    return "fatal"


def compute_delay(policy: RetryPolicy, attempt: int, rng: random.Random | None = None) -> float:
    """Delay before retry number ``attempt`` (0-based)."""
    delay = policy.base_delay_s * (policy.backoff_factor ** attempt)
    if policy.jitter:
        uniform = (rng or random).uniform  # noqa: S311
        delay *= 1.0 + uniform(-policy.jitter, policy.jitter)
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    stage: str = "unknown",
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    rng: random.Random | None = None,
    **kwargs: Any,
) -> Any:
    """Execute an async callable, retrying retriable model errors.

    Raises:
        LLMRetryExhausted: Retriable error persisted for every attempt.
        Exception: Any non-retriable error, unchanged.
    """
    policy = policy or RetryPolicy()
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except RETRIABLE_ERRORS as e:
            attempts += 1
            if attempts >= policy.max_attempts:
                raise LLMRetryExhausted(stage, attempts, e) from e

            delay = compute_delay(policy, attempts - 1, rng)
            logger.warning(
                "Stage '%s': %s (attempt %d/%d), retrying in %.2fs",
                stage, classify_error(e), attempts, policy.max_attempts, delay,
            )
            await sleep(delay)
