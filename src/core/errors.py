# src/core/errors.py — v2
"""Domain error taxonomy.

Every error carries a user-safe ``message`` and an ``http_status`` so the
HTTP layer can translate without inspecting internals. Errors fall into
four families:

- Admission errors (BadFile, QuotaExceeded, Unauthorized): raised
  synchronously by the ingestor before any side effect.
- Transient infrastructure errors (ObjectStoreUnavailable, QueueUnavailable,
  LlmTimeout, LlmRateLimited, LlmServerError): retried with backoff inside
  the attempt budget.
- Content errors (BadModelOutput, PreconditionMissing): not retried at the
  call level; the job re-enters the queue and dead-letters after the last
  attempt.
- StageFailed: wraps whatever ended a stage and names the stage.
"""

from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """Base class for all domain errors."""

    http_status: int = 500
    retriable: bool = False

    def __init__(self, message: str, **details: Any) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "message": self.message, **self.details}


# === Admission ===


class AdmissionError(PipelineError):
    http_status = 400


class BadFile(AdmissionError):
    http_status = 400


class QuotaExceeded(AdmissionError):
    """Plan limit reached for the current billing period."""

    http_status = 403

    def __init__(self, plan_type: str, used: int, limit: int) -> None:
        super().__init__(
            f"Quota exceeded for {plan_type} plan ({used}/{limit} used this period)",
            planType=plan_type,
            used=used,
            limit=limit,
        )
        self.plan_type = plan_type
        self.used = used
        self.limit = limit


class Unauthorized(AdmissionError):
    http_status = 401


# === Lookup ===


class NotFound(PipelineError):
    http_status = 404


class JobConflict(PipelineError):
    http_status = 409


class InvalidRequest(PipelineError):
    """Malformed caller input outside the upload path (cursor, kinds)."""

    http_status = 400


# === Transient infrastructure ===


class TransientError(PipelineError):
    http_status = 503
    retriable = True


class ObjectStoreUnavailable(TransientError):
    pass


class QueueUnavailable(TransientError):
    pass


class LlmTimeout(TransientError):
    pass


class LlmRateLimited(TransientError):
    pass


class LlmServerError(TransientError):
    pass


class StageTimeout(TransientError):
    """A stage ran past its soft deadline."""


# === Non-retriable provider errors ===


class LlmAuthError(PipelineError):
    http_status = 502


class LlmRequestError(PipelineError):
    http_status = 502


# === Content ===


class ContentError(PipelineError):
    http_status = 422


class BadModelOutput(ContentError):
    pass


class PreconditionMissing(ContentError):
    http_status = 409


# === Stage / state ===


class StageFailed(PipelineError):
    """A pipeline stage ended without publishing its artifact."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        reason = cause.message if isinstance(cause, PipelineError) else "internal error"
        super().__init__(f"{stage} stage failed: {reason}", stage=stage)
        self.stage = stage
        self.cause = cause


class IllegalTransition(PipelineError):
    http_status = 409


class AttemptsExhausted(PipelineError):
    """The last delivery of a job expired without being settled."""

    http_status = 504
