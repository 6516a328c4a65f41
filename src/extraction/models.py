# src/extraction/models.py — v1
"""Decoded manuscript text and its structure statistics."""

from __future__ import annotations

from pydantic import BaseModel, Field


class Chapter(BaseModel):
    title: str
    start_position: int


class ExtractionResult(BaseModel):
    """Plain text decoded from one manuscript file."""

    text: str
    file_type: str
    word_count: int = 0
    page_count: int | None = None
    chapters: list[Chapter] = Field(default_factory=list)

    @property
    def chapter_count(self) -> int:
        return len(self.chapters)
