# tests/unit/api/test_errors.py — v1
"""Tests for api/errors.py."""

from __future__ import annotations

from manuscript_pipeline.api.errors import error_body, http_status_for
from manuscript_pipeline.core.errors import (
    BadFile,
    JobConflict,
    LlmTimeout,
    NotFound,
    PreconditionMissing,
    QuotaExceeded,
    StageFailed,
    Unauthorized,
)


class TestHttpStatus:
    def test_domain_errors(self):
        assert http_status_for(BadFile("File is empty")) == 400
        assert http_status_for(Unauthorized("no")) == 401
        assert http_status_for(QuotaExceeded("free", 5, 5)) == 403
        assert http_status_for(NotFound("gone")) == 404
        assert http_status_for(JobConflict("busy")) == 409
        assert http_status_for(PreconditionMissing("need developmental")) == 409
        assert http_status_for(LlmTimeout("slow")) == 503

    def test_unknown_error_is_500(self):
        assert http_status_for(RuntimeError("boom")) == 500


class TestErrorBody:
    def test_quota_body(self):
        assert error_body(QuotaExceeded("pro", 10, 10)) == {
            "error": "QuotaExceeded",
            "planType": "pro",
            "used": 10,
            "limit": 10,
        }

    def test_bad_file_carries_limit(self):
        body = error_body(BadFile("too big", maxBytes=1024))
        assert body["message"] == "too big"
        assert body["maxBytes"] == 1024

    def test_stage_failure_names_stage(self):
        body = error_body(StageFailed("keywords", LlmTimeout("model call timed out")))
        assert body["stage"] == "keywords"
        assert body["message"] == "keywords stage failed: model call timed out"

    def test_internal_errors_hidden(self):
        body = error_body(KeyError("database password"))
        assert body == {"error": "InternalError", "message": "internal error"}
