# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides a frozen clock, settings wired to in-process backends under
tmp_path, a scripted LLM that returns canned JSON per stage, and a fully
started container. No external services are needed.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio

from manuscript_pipeline.api.facade import ManuscriptService
from manuscript_pipeline.config.settings import Settings
from manuscript_pipeline.container import Container, build_container
from manuscript_pipeline.core.models import Manuscript
from manuscript_pipeline.db.schema import apply_schema
from manuscript_pipeline.db.sqlite_database import SqliteDatabase
from manuscript_pipeline.llm.base_client import BaseLLMClient
from manuscript_pipeline.llm.models import LLMResponse, Message

SCRIPTED_MODEL = "claude-sonnet-4-20250514"


# === FAKES ===


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)


def _section(score: int) -> dict[str, Any]:
    return {"score": score, "strengths": ["pacing"], "weaknesses": [], "recommendations": []}


CANNED_RESPONSES: dict[str, dict[str, Any]] = {
    "developmental": {
        "overallScore": 7,
        "structure": _section(7),
        "characters": _section(8),
        "plot": _section(6),
        "voice": _section(8),
        "genreFit": _section(7),
        "topPriorities": ["Tighten the middle act"],
    },
    "line-editing": {
        "overallScore": 8,
        "issues": [{"original": "She walked slowly.", "suggestion": "She ambled.", "type": "wordiness"}],
    },
    "copy-editing": {
        "overallScore": 9,
        "errors": [{"text": "teh", "correction": "the", "type": "spelling"}],
    },
    "book-description": {"short": "A storm.", "medium": "A storm at sea.", "long": "A long storm at sea."},
    "keywords": {
        "keywords": [
            "sea adventure novel",
            "storm survival story",
            "lighthouse keeper fiction",
            "coastal mystery",
            "family saga at sea",
            "maritime thriller",
            "atlantic island books",
        ]
    },
    "categories": {"primary": {"path": "Fiction > Sea Stories"}, "secondary": [{"path": "Fiction > Family Life"}]},
    "author-bio": {"short": "Writes.", "medium": "Writes novels.", "long": "Writes novels by the sea."},
    "back-matter": {"thankYouMessage": "Thank you", "newsletterCTA": "Sign up"},
    "audiobook-narration": {"narrationStyle": {"tone": "warm"}, "characterVoices": []},
    "audiobook-pronunciation": {"characterNames": [], "placeNames": []},
    "audiobook-timing": {"overallTiming": {"wordsPerMinute": 155}},
    "audiobook-samples": {"retailAudioSample": {"passage": "It began at dusk."}},
    "audiobook-metadata": {"titleMetadata": {"title": "The Storm"}, "publisherSummary": "A storm."},
}


class ScriptedLLM:
    """LLM factory stand-in: ``scripted(stage)`` returns a client for that stage.

    ``responses`` holds the raw text per stage, ``errors`` an exception
    raised on every call of a stage, and ``hooks`` a coroutine awaited
    before a stage's call returns (used to cancel mid-stage).
    """

    def __init__(self) -> None:
        self.responses: dict[str, str] = {k: json.dumps(v) for k, v in CANNED_RESPONSES.items()}
        self.errors: dict[str, BaseException] = {}
        self.hooks: dict[str, Callable[[], Awaitable[None]]] = {}
        self.calls: list[str] = []

    def __call__(self, stage: str) -> BaseLLMClient:
        return _StageClient(self, stage)

    def calls_for(self, stage: str) -> int:
        return self.calls.count(stage)


class _StageClient(BaseLLMClient):
    def __init__(self, script: ScriptedLLM, stage: str) -> None:
        self._script = script
        self._stage = stage

    @property
    def provider_name(self) -> str:
        return "scripted"

    @property
    def model(self) -> str:
        return SCRIPTED_MODEL

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.3,
    ) -> LLMResponse:
        self._script.calls.append(self._stage)
        hook = self._script.hooks.get(self._stage)
        if hook is not None:
            await hook()
        error = self._script.errors.get(self._stage)
        if error is not None:
            raise error
        return LLMResponse(
            content=self._script.responses[self._stage],
            input_tokens=1000,
            output_tokens=200,
            model=SCRIPTED_MODEL,
            provider="scripted",
            latency_ms=5,
        )


# === FIXTURES ===


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        database="sqlite",
        sqlite_path=tmp_path / "pipeline.db",
        object_store="local",
        object_store_root=tmp_path / "objects",
        queue_backend="memory",
        cache_backend="memory",
        queue_retry_delay_seconds=0,
        llm_retry_base_delay_s=0.0,
        llm_retry_jitter=0.0,
    )


@pytest.fixture
def scripted_llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest_asyncio.fixture
async def container(settings, clock, scripted_llm) -> Container:
    c = build_container(settings, clock=clock, llm_factory=scripted_llm)
    await c.start()
    yield c
    await c.close()


@pytest.fixture
def service(container) -> ManuscriptService:
    return ManuscriptService(container)


@pytest.fixture
def manuscript_text() -> bytes:
    """About 10 KiB of plain text in three chapters."""
    paragraph = (
        "The lighthouse keeper watched the storm roll in from the Atlantic, "
        "counting the seconds between each flash of lightning and the thunder. "
    )
    chapters = [f"Chapter {n}\n\n" + paragraph * 25 for n in (1, 2, 3)]
    return "\n\n".join(chapters).encode("utf-8")


@pytest_asyncio.fixture
async def db():
    """Empty in-memory SQLite database with the schema applied."""
    database = SqliteDatabase(":memory:")
    await apply_schema(database)
    yield database
    await database.close()


@pytest.fixture
def make_manuscript(clock) -> Callable[..., Manuscript]:
    """Factory for Manuscript rows; keyword arguments override defaults."""

    def factory(**overrides: Any) -> Manuscript:
        values: dict[str, Any] = dict(
            id="ms-0001",
            user_id="user-1",
            title="The Storm",
            genre="literary",
            word_count=3000,
            original_filename="storm.txt",
            file_hash="a" * 64,
            storage_key="user-1/ms-0001/2026-03-15T12:00:00.000Z_storm.txt",
            file_type="txt",
            status="draft",
            uploaded_at=clock.now(),
            updated_at=clock.now(),
        )
        values.update(overrides)
        return Manuscript(**values)

    return factory
