# tests/unit/pipeline/test_agents.py — v1
"""Tests for pipeline/agents and plugin_kit/base_agent.py."""

from __future__ import annotations

import json

import pytest

from manuscript_pipeline.core.errors import BadModelOutput, LlmAuthError, LlmServerError
from manuscript_pipeline.llm.retry import LLMRetryExhausted, RetryPolicy
from manuscript_pipeline.pipeline.agents.editorial import (
    CopyEditingAgent,
    DevelopmentalAgent,
    LineEditingAgent,
)
from manuscript_pipeline.pipeline.agents.marketing import KeywordAgent
from manuscript_pipeline.pipeline.plugin_kit.base_agent import truncate_for_analysis
from manuscript_pipeline.pipeline.plugin_kit.models import StageContext
from manuscript_pipeline.pipeline.registry import AgentRegistry
from manuscript_pipeline.tracking.call_logger import CallLogger


def _context(**overrides) -> StageContext:
    values = dict(
        manuscript_id="ms-1",
        report_id="rep12345",
        user_id="user-1",
        title="The Storm",
        genre="literary",
        style_guide="chicago",
        text="Chapter 1\n\nThe storm came.",
        word_count=5,
        chapter_count=1,
        call_logger=CallLogger("rep12345"),
        retry_policy=RetryPolicy(max_attempts=3, base_delay_s=0.0, jitter=0.0),
    )
    values.update(overrides)
    return StageContext(**values)


class TestPrompts:
    def test_every_registered_agent_renders_its_prompt(self):
        registry = AgentRegistry().load_all()
        context = _context(artifacts={"developmental": {"overallScore": 7}})
        for agent in registry.agents.values():
            prompt = agent.build_prompt(context)
            assert "The Storm" in prompt, agent.name

    def test_prompt_is_deterministic(self):
        agent = LineEditingAgent()
        context = _context(artifacts={"developmental": {"overallScore": 7, "plot": {"score": 6}}})
        assert agent.build_prompt(context) == agent.build_prompt(context)

    def test_prompt_includes_dependency_artifacts(self):
        agent = LineEditingAgent()
        context = _context(artifacts={"developmental": {"topPriorities": ["Tighten act two"]}})
        assert "Tighten act two" in agent.build_prompt(context)

    def test_copy_editing_uses_style_guide(self):
        prompt = CopyEditingAgent().build_prompt(_context(style_guide="apa-7th"))
        assert "apa-7th" in prompt

    def test_truncate_keeps_head_and_tail(self):
        text = "A" * 800 + "Z" * 200
        result = truncate_for_analysis(text, 100)
        assert result.startswith("A" * 70)
        assert result.endswith("Z" * 30)
        assert truncate_for_analysis("short", 100) == "short"


class TestExecute:
    @pytest.mark.asyncio
    async def test_developmental_success(self, scripted_llm):
        context = _context()
        output = await DevelopmentalAgent().execute(context, scripted_llm("developmental"))
        assert output.data["overallScore"] == 7
        assert output.metadata.agent_name == "developmental"
        assert output.metadata.tokens_used == 1200
        assert context.call_logger.stage_cost("developmental").calls == 1

    @pytest.mark.asyncio
    async def test_fenced_json_is_accepted(self, scripted_llm):
        body = json.dumps({"overallScore": 8, "issues": []})
        scripted_llm.responses["line-editing"] = f"```json\n{body}\n```"
        output = await LineEditingAgent().execute(_context(), scripted_llm("line-editing"))
        assert output.data == {"overallScore": 8, "issues": []}

    @pytest.mark.asyncio
    async def test_malformed_output_is_logged_before_failing(self, scripted_llm):
        scripted_llm.responses["line-editing"] = "Here are my notes: not json"
        context = _context()
        with pytest.raises(BadModelOutput, match="not valid JSON"):
            await LineEditingAgent().execute(context, scripted_llm("line-editing"))
        assert context.call_logger.stage_cost("line-editing").calls == 1

    @pytest.mark.asyncio
    async def test_missing_section_rejected(self, scripted_llm):
        scripted_llm.responses["developmental"] = json.dumps({"overallScore": 7, "topPriorities": []})
        with pytest.raises(BadModelOutput, match="missing required field"):
            await DevelopmentalAgent().execute(_context(), scripted_llm("developmental"))

    @pytest.mark.asyncio
    async def test_copy_editing_counts_errors(self, scripted_llm):
        output = await CopyEditingAgent().execute(_context(), scripted_llm("copy-editing"))
        assert output.data["errorCount"] == 1

    @pytest.mark.asyncio
    async def test_transient_errors_exhaust_retries(self, scripted_llm):
        scripted_llm.errors["developmental"] = LlmServerError("upstream 503")
        with pytest.raises(LLMRetryExhausted):
            await DevelopmentalAgent().execute(_context(), scripted_llm("developmental"))
        assert scripted_llm.calls_for("developmental") == 3

    @pytest.mark.asyncio
    async def test_auth_error_not_retried(self, scripted_llm):
        scripted_llm.errors["developmental"] = LlmAuthError("bad key")
        with pytest.raises(LlmAuthError):
            await DevelopmentalAgent().execute(_context(), scripted_llm("developmental"))
        assert scripted_llm.calls_for("developmental") == 1


class TestKeywordValidation:
    def _validate(self, keywords):
        KeywordAgent().validate_data({"keywords": keywords})

    def test_seven_short_phrases_pass(self):
        self._validate([f"phrase {i}" for i in range(7)])

    def test_wrong_count_rejected(self):
        with pytest.raises(BadModelOutput, match="exactly 7"):
            self._validate([f"phrase {i}" for i in range(6)])

    def test_long_phrase_rejected(self):
        keywords = [f"phrase {i}" for i in range(6)] + ["x" * 51]
        with pytest.raises(BadModelOutput, match="exceed 50"):
            self._validate(keywords)

    def test_non_list_rejected(self):
        with pytest.raises(BadModelOutput, match="not a list"):
            self._validate("one, two, three")
