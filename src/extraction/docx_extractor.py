# src/extraction/docx_extractor.py — v2
"""DOCX extractor using python-docx.

Heading paragraphs are prefixed with markdown markers so chapter
detection sees them. Requires the 'python-docx' package.
"""

from __future__ import annotations

import asyncio
import io
import logging

from manuscript_pipeline.core.errors import BadFile
from manuscript_pipeline.extraction.base_extractor import BaseExtractor

logger = logging.getLogger(__name__)


def _docx_to_text(content: bytes) -> str:
    try:
        import docx
    except ImportError as e:
        raise ImportError(
            "python-docx package required for DOCX extraction: "
            "pip install python-docx"
        ) from e

    try:
        doc = docx.Document(io.BytesIO(content))
    except Exception as e:
        raise BadFile("The .docx file could not be read") from e

    parts: list[str] = []
    for para in doc.paragraphs:
        if not para.text.strip():
            continue
        style_name = (para.style.name or "").lower() if para.style is not None else ""
        if style_name.startswith("heading") or style_name == "title":
            try:
                level = int(style_name.replace("heading", "").strip())
            except ValueError:
                level = 1
            parts.append(f"{'#' * level} {para.text}")
        else:
            parts.append(para.text)
    return "\n\n".join(parts)


class DocxExtractor(BaseExtractor):
    """Extractor for Word documents (.docx)."""

    @property
    def file_type(self) -> str:
        return "docx"

    async def extract_text(self, content: bytes) -> str:
        return await asyncio.to_thread(_docx_to_text, content)
