# src/extraction/extractor_factory.py — v3
"""Factory: instantiate an extractor from a manuscript file type."""

from __future__ import annotations

from manuscript_pipeline.core.errors import BadFile
from manuscript_pipeline.extraction.base_extractor import BaseExtractor
from manuscript_pipeline.extraction.docx_extractor import DocxExtractor
from manuscript_pipeline.extraction.epub_extractor import EpubExtractor
from manuscript_pipeline.extraction.models import ExtractionResult
from manuscript_pipeline.extraction.pdf_extractor import PdfExtractor
from manuscript_pipeline.extraction.txt_extractor import TxtExtractor

_EXTRACTOR_REGISTRY: dict[str, type[BaseExtractor]] = {
    "txt": TxtExtractor,
    "docx": DocxExtractor,
    "pdf": PdfExtractor,
    "epub": EpubExtractor,
}


def create_extractor(file_type: str) -> BaseExtractor:
    """Create the extractor for a detected file type.

    Raises:
        BadFile: For legacy ``.doc`` files and unknown types.
    """
    if file_type == "doc":
        raise BadFile("Legacy .doc files cannot be decoded; save the manuscript as .docx")
    cls = _EXTRACTOR_REGISTRY.get(file_type)
    if cls is None:
        raise BadFile(f"No decoder for file type {file_type!r}")
    return cls()


async def extract_manuscript(content: bytes, file_type: str) -> ExtractionResult:
    """Decode a manuscript of a known type."""
    return await create_extractor(file_type).extract(content)


def supported_types() -> list[str]:
    return sorted(_EXTRACTOR_REGISTRY)
