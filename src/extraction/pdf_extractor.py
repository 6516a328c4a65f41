# src/extraction/pdf_extractor.py — v2
"""PDF extractor using PyMuPDF (fitz).

Requires the 'pymupdf' package.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from manuscript_pipeline.core.errors import BadFile
from manuscript_pipeline.extraction.base_extractor import BaseExtractor
from manuscript_pipeline.extraction.models import ExtractionResult

logger = logging.getLogger(__name__)


def _open(content: bytes) -> Any:
    try:
        import fitz  # PyMuPDF
    except ImportError as e:
        raise ImportError(
            "pymupdf package required for PDF extraction: pip install pymupdf"
        ) from e
    try:
        return fitz.open(stream=content, filetype="pdf")
    except Exception as e:
        raise BadFile("The PDF file could not be read") from e


def pdf_page_count(content: bytes) -> int:
    """Number of pages; raises BadFile for unreadable documents."""
    doc = _open(content)
    try:
        return doc.page_count
    finally:
        doc.close()


def _pdf_to_text(content: bytes) -> tuple[str, int]:
    doc = _open(content)
    try:
        pages = [page.get_text("text") for page in doc]
        return "\n".join(pages), doc.page_count
    finally:
        doc.close()


class PdfExtractor(BaseExtractor):
    """Extractor for PDF files using PyMuPDF."""

    @property
    def file_type(self) -> str:
        return "pdf"

    async def extract_text(self, content: bytes) -> str:
        text, _ = await asyncio.to_thread(_pdf_to_text, content)
        return text

    async def extract(self, content: bytes) -> ExtractionResult:
        result = await super().extract(content)
        result.page_count = await asyncio.to_thread(pdf_page_count, content)
        return result
