# src/pipeline/agents/editorial.py — v1
"""Editorial agents: developmental, line-editing, copy-editing.

The three passes run in sequence; each later pass reads the earlier
reports so it does not repeat their findings.
"""

from __future__ import annotations

from typing import Any

from manuscript_pipeline.core.errors import BadModelOutput
from manuscript_pipeline.pipeline.plugin_kit.base_agent import BaseAgent

SCORED_SECTIONS = ("structure", "characters", "plot", "voice", "genreFit")


def _check_score(data: dict[str, Any], field: str) -> None:
    score = data.get(field)
    if not isinstance(score, (int, float)) or isinstance(score, bool):
        raise BadModelOutput(f"model output field {field!r} is not a number")


class DevelopmentalAgent(BaseAgent):
    """Whole-book structural review; every other stage builds on it."""

    temperature = 0.3
    max_tokens = 8192

    @property
    def name(self) -> str:
        return "developmental"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def description(self) -> str:
        return "Structure, character, plot, voice and genre-fit review with scores"

    @property
    def required_fields(self) -> list[str]:
        return ["overallScore", *SCORED_SECTIONS, "topPriorities"]

    def validate_data(self, data: dict[str, Any]) -> None:
        _check_score(data, "overallScore")
        for section in SCORED_SECTIONS:
            if not isinstance(data[section], dict):
                raise BadModelOutput(f"model output section {section!r} is not an object")


class LineEditingAgent(BaseAgent):
    temperature = 0.3
    max_tokens = 8192

    @property
    def name(self) -> str:
        return "line-editing"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def description(self) -> str:
        return "Sentence-level prose edits with suggested rewrites"

    @property
    def dependencies(self) -> list[str]:
        return ["developmental"]

    @property
    def required_fields(self) -> list[str]:
        return ["overallScore", "issues"]

    def validate_data(self, data: dict[str, Any]) -> None:
        _check_score(data, "overallScore")
        if not isinstance(data["issues"], list):
            raise BadModelOutput("model output field 'issues' is not a list")


class CopyEditingAgent(BaseAgent):
    temperature = 0.3
    max_tokens = 8192

    @property
    def name(self) -> str:
        return "copy-editing"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def description(self) -> str:
        return "Grammar, spelling, punctuation and consistency against a style guide"

    @property
    def dependencies(self) -> list[str]:
        return ["line-editing"]

    @property
    def required_fields(self) -> list[str]:
        return ["overallScore", "errors"]

    def validate_data(self, data: dict[str, Any]) -> None:
        _check_score(data, "overallScore")
        if not isinstance(data["errors"], list):
            raise BadModelOutput("model output field 'errors' is not a list")
        data.setdefault("errorCount", len(data["errors"]))
