# src/pipeline/agents/marketing.py — v1
"""Marketing asset agents (batch A). All five read the developmental review."""

from __future__ import annotations

from typing import Any

from manuscript_pipeline.core.errors import BadModelOutput
from manuscript_pipeline.pipeline.plugin_kit.base_agent import BaseAgent

KEYWORD_COUNT = 7
KEYWORD_MAX_CHARS = 50

# Asset prompts carry only the opening of the book.
EXCERPT_CHARS = 20_000


class _MarketingAgent(BaseAgent):
    temperature = 0.7
    manuscript_chars = EXCERPT_CHARS

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def dependencies(self) -> list[str]:
        return ["developmental"]


class BookDescriptionAgent(_MarketingAgent):
    @property
    def name(self) -> str:
        return "book-description"

    @property
    def description(self) -> str:
        return "Short, medium and long retail descriptions with hooks"

    @property
    def required_fields(self) -> list[str]:
        return ["short", "medium", "long"]


class KeywordAgent(_MarketingAgent):
    """Exactly seven search phrases, each at most fifty characters."""

    @property
    def name(self) -> str:
        return "keywords"

    @property
    def description(self) -> str:
        return "Seven retail search keyword phrases"

    @property
    def required_fields(self) -> list[str]:
        return ["keywords"]

    def validate_data(self, data: dict[str, Any]) -> None:
        keywords = data["keywords"]
        if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
            raise BadModelOutput("model output field 'keywords' is not a list of strings")
        if len(keywords) != KEYWORD_COUNT:
            raise BadModelOutput(
                f"expected exactly {KEYWORD_COUNT} keywords, got {len(keywords)}"
            )
        too_long = [k for k in keywords if len(k) > KEYWORD_MAX_CHARS]
        if too_long:
            raise BadModelOutput(
                f"{len(too_long)} keyword(s) exceed {KEYWORD_MAX_CHARS} characters",
                keywords=too_long,
            )


class CategoryAgent(_MarketingAgent):
    temperature = 0.3

    @property
    def name(self) -> str:
        return "categories"

    @property
    def description(self) -> str:
        return "Primary, secondary and alternative store categories"

    @property
    def required_fields(self) -> list[str]:
        return ["primary", "secondary"]


class AuthorBioAgent(_MarketingAgent):
    @property
    def name(self) -> str:
        return "author-bio"

    @property
    def description(self) -> str:
        return "Author biography templates in three lengths"

    @property
    def required_fields(self) -> list[str]:
        return ["short", "medium", "long"]


class BackMatterAgent(_MarketingAgent):
    @property
    def name(self) -> str:
        return "back-matter"

    @property
    def description(self) -> str:
        return "Thank-you, newsletter and connect pages for the end of the book"

    @property
    def required_fields(self) -> list[str]:
        return ["thankYouMessage", "newsletterCTA"]
