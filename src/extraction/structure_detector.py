# src/extraction/structure_detector.py — v3
"""Word counting and chapter detection on decoded manuscript text."""

from __future__ import annotations

import re

from manuscript_pipeline.extraction.models import Chapter

_ROMAN = r"[IVXLCDM]+"

_CHAPTER_PATTERNS = [
    # Markdown headings emitted by the DOCX extractor: "# Chapter One"
    re.compile(r"^#{1,2}\s+(.+)$"),
    # "Chapter 12", "CHAPTER 12: The Storm", "Chapter XII"
    re.compile(rf"^chapter\s+(\d+|{_ROMAN}|[a-z\-]+)\b.*$", re.IGNORECASE),
    # "Part II", "PART 3"
    re.compile(rf"^part\s+(\d+|{_ROMAN})\b.*$", re.IGNORECASE),
    # Bare roman numerals on their own line: "XIV"
    re.compile(rf"^({_ROMAN})\.?$"),
]


def count_words(text: str) -> int:
    """Whitespace-delimited token count; empty tokens are ignored."""
    return len(text.split())


def detect_chapters(text: str) -> list[Chapter]:
    """Chapter-like headings in document order.

    Args:
        text: Decoded manuscript text.

    Returns:
        One Chapter per heading line, with its character offset.
    """
    chapters: list[Chapter] = []
    offset = 0
    for line in text.splitlines(keepends=True):
        stripped = line.strip()
        if stripped and len(stripped) <= 120:
            for pattern in _CHAPTER_PATTERNS:
                if pattern.match(stripped):
                    chapters.append(Chapter(title=stripped.lstrip("# ").strip(), start_position=offset))
                    break
        offset += len(line)
    return chapters
