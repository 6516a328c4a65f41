# tests/unit/llm/test_json_output.py — v1
"""Tests for llm/json_output.py: strict parsing of model responses."""

from __future__ import annotations

import pytest

from manuscript_pipeline.core.errors import BadModelOutput
from manuscript_pipeline.llm.json_output import parse_json_object, strip_code_fence


class TestStripCodeFence:
    def test_json_fence(self):
        assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_code_fence('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_no_fence(self):
        assert strip_code_fence('  {"a": 1}  ') == '{"a": 1}'


class TestParseJsonObject:
    def test_object(self):
        assert parse_json_object('{"short": "x"}', ["short"]) == {"short": "x"}

    def test_invalid_json(self):
        with pytest.raises(BadModelOutput, match="not valid JSON") as info:
            parse_json_object("{'single': 'quotes'}")
        assert "position" in info.value.details["detail"]

    def test_prose_around_json_is_rejected(self):
        with pytest.raises(BadModelOutput):
            parse_json_object('Sure! {"short": "x"}')

    def test_array_rejected(self):
        with pytest.raises(BadModelOutput, match="not a JSON object"):
            parse_json_object("[1, 2]")

    def test_empty_rejected(self):
        with pytest.raises(BadModelOutput, match="empty"):
            parse_json_object("   ")

    def test_missing_fields_named(self):
        with pytest.raises(BadModelOutput, match="medium, long"):
            parse_json_object('{"short": "x"}', ["short", "medium", "long"])
