# src/ingest/file_validation.py — v1
"""Upload admission checks that run before any side effect."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from manuscript_pipeline.core.errors import BadFile
from manuscript_pipeline.core.models import FILE_TYPES
from manuscript_pipeline.extraction.file_type import detect_file_type, normalize_declared_type
from manuscript_pipeline.extraction.pdf_extractor import pdf_page_count

logger = logging.getLogger(__name__)

MIB = 1024 * 1024


@dataclass(frozen=True)
class ValidatedFile:
    file_type: str
    size: int
    page_count: int | None = None


def _format_limit(max_bytes: int) -> str:
    if max_bytes % MIB == 0:
        return f"{max_bytes // MIB} MiB"
    return f"{max_bytes} bytes"


def validate_upload(
    content: bytes,
    declared_type: str,
    max_file_bytes: int,
    max_pages: int,
) -> ValidatedFile:
    """Check size, declared type, detected type and page count.

    Raises:
        BadFile: With a message naming the violated constraint.
    """
    size = len(content)
    if size == 0:
        raise BadFile("File is empty")
    if size > max_file_bytes:
        raise BadFile(
            f"File is {size / MIB:.1f} MiB; the maximum upload size is {_format_limit(max_file_bytes)}",
            maxBytes=max_file_bytes,
        )

    declared = normalize_declared_type(declared_type)
    if declared not in FILE_TYPES:
        raise BadFile(
            f"Unsupported file type {declared_type!r}; expected one of {', '.join(FILE_TYPES)}"
        )

    detected = detect_file_type(content)
    if detected != declared:
        logger.info("Declared type %s does not match detected %s", declared, detected)
        raise BadFile(
            f"File content does not match the declared type {declared}"
            + (f" (looks like {detected})" if detected else "")
        )

    page_count = None
    if detected == "pdf":
        page_count = pdf_page_count(content)
        if page_count > max_pages:
            raise BadFile(
                f"PDF has {page_count} pages; the maximum is {max_pages}",
                maxPages=max_pages,
            )

    return ValidatedFile(file_type=detected, size=size, page_count=page_count)
