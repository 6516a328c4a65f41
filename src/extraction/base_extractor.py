# src/extraction/base_extractor.py — v2
"""Abstract extractor interface for manuscript formats."""

from __future__ import annotations

from abc import ABC, abstractmethod

from manuscript_pipeline.extraction.models import ExtractionResult
from manuscript_pipeline.extraction.structure_detector import count_words, detect_chapters


class BaseExtractor(ABC):
    """Unified interface for manuscript format extractors."""

    @property
    @abstractmethod
    def file_type(self) -> str:
        """Declared type this extractor decodes (e.g. ``pdf``)."""

    @abstractmethod
    async def extract_text(self, content: bytes) -> str:
        """Decode the raw bytes to plain text.

        Raises:
            BadFile: If the bytes cannot be decoded as this format.
        """

    async def extract(self, content: bytes) -> ExtractionResult:
        """Decode and annotate with word count and chapter markers."""
        text = await self.extract_text(content)
        return ExtractionResult(
            text=text,
            file_type=self.file_type,
            word_count=count_words(text),
            chapters=detect_chapters(text),
        )
