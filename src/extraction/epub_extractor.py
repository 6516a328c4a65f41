# src/extraction/epub_extractor.py — v2
"""EPUB extractor using ebooklib.

Reads XHTML documents in spine order and strips markup with
BeautifulSoup. Requires the 'ebooklib' and 'beautifulsoup4' packages.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile

from manuscript_pipeline.core.errors import BadFile
from manuscript_pipeline.extraction.base_extractor import BaseExtractor

logger = logging.getLogger(__name__)


def _epub_to_text(content: bytes) -> str:
    try:
        import ebooklib
        from ebooklib import epub
    except ImportError as e:
        raise ImportError(
            "ebooklib package required for EPUB extraction: "
            "pip install ebooklib beautifulsoup4"
        ) from e

    try:
        from bs4 import BeautifulSoup
    except ImportError as e:
        raise ImportError(
            "beautifulsoup4 required for EPUB extraction: pip install beautifulsoup4"
        ) from e

    # ebooklib reads from a path
    fd, path = tempfile.mkstemp(suffix=".epub")
    try:
        with os.fdopen(fd, "wb") as tmp:
            tmp.write(content)
        try:
            book = epub.read_epub(path)
        except Exception as e:
            raise BadFile("The EPUB file could not be read") from e
    finally:
        os.unlink(path)

    documents = {item.get_id(): item for item in book.get_items_of_type(ebooklib.ITEM_DOCUMENT)}
    ordered = [documents[idref] for idref, _ in book.spine if idref in documents]
    ordered += [item for key, item in documents.items() if item not in ordered]

    parts: list[str] = []
    for item in ordered:
        soup = BeautifulSoup(item.get_content().decode("utf-8", errors="replace"), "html.parser")
        text = soup.get_text(separator="\n", strip=True)
        if text.strip():
            parts.append(text)
    return "\n\n".join(parts)


class EpubExtractor(BaseExtractor):
    """Extractor for EPUB files (.epub)."""

    @property
    def file_type(self) -> str:
        return "epub"

    async def extract_text(self, content: bytes) -> str:
        return await asyncio.to_thread(_epub_to_text, content)
