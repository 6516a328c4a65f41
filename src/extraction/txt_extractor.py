# src/extraction/txt_extractor.py — v3
"""Plain text extractor: UTF-8 with replacement, BOM stripped."""

from __future__ import annotations

from manuscript_pipeline.extraction.base_extractor import BaseExtractor


class TxtExtractor(BaseExtractor):
    """Extractor for plain text files (.txt)."""

    @property
    def file_type(self) -> str:
        return "txt"

    async def extract_text(self, content: bytes) -> str:
        return content.decode("utf-8", errors="replace").lstrip("\ufeff")
