# src/pipeline/agents/audiobook.py — v1
"""Audiobook agents (batch B).

Four agents read the book description; audiobook-metadata also reads the
keywords and categories so the audio edition lists under the same terms.
"""

from __future__ import annotations

from manuscript_pipeline.pipeline.plugin_kit.base_agent import BaseAgent

EXCERPT_CHARS = 60_000


class _AudiobookAgent(BaseAgent):
    temperature = 0.5
    manuscript_chars = EXCERPT_CHARS

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def dependencies(self) -> list[str]:
        return ["book-description"]


class NarrationAgent(_AudiobookAgent):
    temperature = 0.7

    @property
    def name(self) -> str:
        return "audiobook-narration"

    @property
    def description(self) -> str:
        return "Narration style, character voices and technical specs"

    @property
    def required_fields(self) -> list[str]:
        return ["narrationStyle", "characterVoices"]


class PronunciationAgent(_AudiobookAgent):
    @property
    def name(self) -> str:
        return "audiobook-pronunciation"

    @property
    def description(self) -> str:
        return "Phonetic guide for names and invented terms"

    @property
    def required_fields(self) -> list[str]:
        return ["characterNames", "placeNames"]


class TimingAgent(_AudiobookAgent):
    @property
    def name(self) -> str:
        return "audiobook-timing"

    @property
    def description(self) -> str:
        return "Running time, chapter estimates and production schedule"

    @property
    def required_fields(self) -> list[str]:
        return ["overallTiming"]


class SampleAgent(_AudiobookAgent):
    temperature = 0.7

    @property
    def name(self) -> str:
        return "audiobook-samples"

    @property
    def description(self) -> str:
        return "Retail, audition and showcase sample passages"

    @property
    def required_fields(self) -> list[str]:
        return ["retailAudioSample"]


class AudiobookMetadataAgent(_AudiobookAgent):
    @property
    def name(self) -> str:
        return "audiobook-metadata"

    @property
    def description(self) -> str:
        return "Distribution metadata for the audio edition"

    @property
    def dependencies(self) -> list[str]:
        return ["book-description", "keywords", "categories"]

    @property
    def required_fields(self) -> list[str]:
        return ["titleMetadata", "publisherSummary"]
