# src/extraction/file_type.py — v1
"""Detect a manuscript's real format from its bytes.

Declared types are checked against this, never against the filename.
"""

from __future__ import annotations

import io
import logging
import zipfile

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"
ZIP_MAGIC = b"PK\x03\x04"
OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
EPUB_MIMETYPE = b"application/epub+zip"

_TEXT_SAMPLE = 8192

MIME_TYPES: dict[str, str] = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "doc": "application/msword",
    "txt": "text/plain",
    "epub": "application/epub+zip",
}


def _zip_type(content: bytes) -> str | None:
    try:
        with zipfile.ZipFile(io.BytesIO(content)) as zf:
            names = set(zf.namelist())
            if "mimetype" in names and zf.read("mimetype").strip() == EPUB_MIMETYPE:
                return "epub"
            if "word/document.xml" in names:
                return "docx"
    except (zipfile.BadZipFile, KeyError, OSError) as e:
        logger.debug("Unreadable zip container: %s", e)
    return None


def _looks_like_text(sample: bytes) -> bool:
    if b"\x00" in sample:
        return False
    try:
        sample.decode("utf-8")
        return True
    except UnicodeDecodeError as e:
        # A multi-byte character cut by the sample boundary is still text.
        if e.start >= len(sample) - 3 and len(sample) == _TEXT_SAMPLE:
            return True
    printable = sum(1 for b in sample if b >= 0x20 or b in (0x09, 0x0A, 0x0D))
    return printable / len(sample) > 0.95


def detect_file_type(content: bytes) -> str | None:
    """One of ``pdf``, ``docx``, ``epub``, ``doc``, ``txt``, or None."""
    if not content:
        return None
    if content.startswith(PDF_MAGIC):
        return "pdf"
    if content.startswith(ZIP_MAGIC):
        return _zip_type(content)
    if content.startswith(OLE2_MAGIC):
        return "doc"
    if _looks_like_text(content[:_TEXT_SAMPLE]):
        return "txt"
    return None


def normalize_declared_type(declared: str) -> str:
    """Accept ``pdf``, ``.pdf`` or a MIME type; return the short name."""
    value = declared.strip().lower()
    for short, mime in MIME_TYPES.items():
        if value == mime:
            return short
    return value.lstrip(".")
