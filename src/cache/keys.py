# src/cache/keys.py — v2
"""Cache key builders. Every key carries the owning user id."""

from __future__ import annotations

TTL_VIEWS = ("manuscript", "analysis_status", "list")


def manuscript_key(user_id: str, manuscript_id: str) -> str:
    return f"manuscript:{user_id}:{manuscript_id}"


def artifact_kinds_key(user_id: str, manuscript_id: str) -> str:
    return f"artifact-kinds:{user_id}:{manuscript_id}"


def artifact_key(user_id: str, manuscript_id: str, kind: str) -> str:
    return f"artifact:{user_id}:{manuscript_id}:{kind}"


def artifact_prefix(user_id: str, manuscript_id: str) -> str:
    return f"artifact:{user_id}:{manuscript_id}:"


def analysis_status_key(user_id: str, manuscript_id: str) -> str:
    return f"analysis-status:{user_id}:{manuscript_id}"


def list_key(user_id: str, status: str | None, genre: str | None) -> str:
    """First page of a listing; later pages are never cached."""
    return f"manuscripts:{user_id}:{status or 'all'}:{genre or 'all'}:p1"


def list_prefix(user_id: str) -> str:
    return f"manuscripts:{user_id}:"


def status_key(report_id: str) -> str:
    return f"status:{report_id}"


def report_id_key(report_id: str) -> str:
    return f"report-id:{report_id}"


def cancel_key(report_id: str) -> str:
    """Cancellation flag; written only by ``StatusTracker.cancel``."""
    return f"cancel:{report_id}"
