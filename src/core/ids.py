# src/core/ids.py — v1
"""Identifier allocation and filename sanitization."""

from __future__ import annotations

import re
import secrets
import uuid

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")
REPORT_ID_LENGTH = 8


def new_manuscript_id() -> str:
    """Random 128-bit id rendered as a canonical UUID string."""
    return str(uuid.uuid4())


def new_report_id() -> str:
    """Short URL-safe job id (8 characters from 48 random bits)."""
    return secrets.token_urlsafe(6)[:REPORT_ID_LENGTH]


def sanitize_filename(name: str) -> str:
    """Replace every character outside ``[a-zA-Z0-9.-]`` with ``_``."""
    return _UNSAFE_FILENAME_CHARS.sub("_", name) or "manuscript"


def filename_stem(name: str) -> str:
    """Filename without its last extension, used as the default title."""
    base = name.rsplit("/", 1)[-1]
    stem, dot, _ = base.rpartition(".")
    return stem if dot and stem else base
