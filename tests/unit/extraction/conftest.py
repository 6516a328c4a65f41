# tests/unit/extraction/conftest.py — v1
"""Builders for small binary manuscripts."""

from __future__ import annotations

import io
import zipfile

import pytest


@pytest.fixture
def make_pdf():
    def build(pages: int = 1, text: str = "Chapter 1") -> bytes:
        import fitz

        doc = fitz.open()
        for n in range(pages):
            page = doc.new_page()
            page.insert_text((72, 72), f"{text} page {n + 1}")
        body = doc.tobytes()
        doc.close()
        return body

    return build


@pytest.fixture
def docx_bytes() -> bytes:
    import docx

    document = docx.Document()
    document.add_heading("Chapter One", level=1)
    document.add_paragraph("The lighthouse keeper watched the storm.")
    document.add_heading("Chapter Two", level=1)
    document.add_paragraph("Morning came grey and quiet.")
    buf = io.BytesIO()
    document.save(buf)
    return buf.getvalue()


@pytest.fixture
def epub_shell() -> bytes:
    """Zip container with only the EPUB mimetype entry."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("mimetype", "application/epub+zip")
    return buf.getvalue()
