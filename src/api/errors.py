# src/api/errors.py — v1
"""Translate domain errors into an HTTP status and a JSON body.

The HTTP layer stays a thin translator: it calls ``http_status_for`` and
``error_body`` and never inspects internals. Unknown exceptions map to 500
with a generic message.
"""

from __future__ import annotations

import logging
from typing import Any

from manuscript_pipeline.core.errors import PipelineError, QuotaExceeded

logger = logging.getLogger(__name__)


def http_status_for(exc: BaseException) -> int:
    if isinstance(exc, PipelineError):
        return exc.http_status
    return 500


def error_body(exc: BaseException) -> dict[str, Any]:
    if isinstance(exc, QuotaExceeded):
        return {
            "error": type(exc).__name__,
            "planType": exc.plan_type,
            "used": exc.used,
            "limit": exc.limit,
        }
    if isinstance(exc, PipelineError):
        return exc.to_dict()
    logger.error("Unhandled error at the service boundary", exc_info=exc)
    return {"error": "InternalError", "message": "internal error"}
