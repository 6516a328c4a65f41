# tests/unit/llm/test_retry.py — v2
"""Tests for llm/retry.py: backoff, classification and exhaustion."""

from __future__ import annotations

import random
from unittest.mock import AsyncMock

import pytest

from manuscript_pipeline.core.errors import (
    BadModelOutput,
    LlmRateLimited,
    LlmTimeout,
    TransientError,
)
from manuscript_pipeline.llm.retry import (
    LLMRetryExhausted,
    RetryPolicy,
    classify_error,
    compute_delay,
    with_retry,
)


class TestComputeDelay:
    def test_exponential_without_jitter(self):
        policy = RetryPolicy(base_delay_s=1.0, backoff_factor=2.0, jitter=0.0)
        assert [compute_delay(policy, n) for n in range(3)] == [1.0, 2.0, 4.0]

    def test_jitter_stays_in_band(self):
        policy = RetryPolicy(base_delay_s=1.0, backoff_factor=2.0, jitter=0.25)
        rng = random.Random(7)
        for _ in range(50):
            assert 1.5 <= compute_delay(policy, 1, rng) <= 2.5


class TestClassifyError:
    def test_classification(self):
        assert classify_error(LlmRateLimited("429")) == "rate_limit"
        assert classify_error(LlmTimeout("slow")) == "timeout"
        assert classify_error(ValueError("x")) == "fatal"


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_success_after_transient_errors(self):
        fn = AsyncMock(side_effect=[LlmTimeout("t1"), LlmRateLimited("r1"), "ok"])
        sleep = AsyncMock()
        policy = RetryPolicy(max_attempts=3, base_delay_s=1.0, jitter=0.0)
        result = await with_retry(fn, "arg", stage="keywords", policy=policy, sleep=sleep, key="v")
        assert result == "ok"
        assert fn.await_count == 3
        fn.assert_awaited_with("arg", key="v")
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhaustion_wraps_last_error(self):
        fn = AsyncMock(side_effect=LlmTimeout("deadline exceeded"))
        with pytest.raises(LLMRetryExhausted) as info:
            await with_retry(fn, stage="developmental", policy=RetryPolicy(max_attempts=2), sleep=AsyncMock())
        assert info.value.attempts == 2
        assert isinstance(info.value, TransientError)
        assert "deadline exceeded" in info.value.message

    @pytest.mark.asyncio
    async def test_content_errors_propagate_immediately(self):
        fn = AsyncMock(side_effect=BadModelOutput("model output was not valid JSON"))
        sleep = AsyncMock()
        with pytest.raises(BadModelOutput):
            await with_retry(fn, policy=RetryPolicy(max_attempts=5), sleep=sleep)
        assert fn.await_count == 1
        sleep.assert_not_awaited()
