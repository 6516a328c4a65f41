# tests/unit/core/test_models.py — v2
"""Tests for core/models.py, core/ids.py and core/errors.py."""

from __future__ import annotations

import re

from manuscript_pipeline.core.errors import BadModelOutput, QuotaExceeded, StageFailed
from manuscript_pipeline.core.ids import filename_stem, new_report_id, sanitize_filename
from manuscript_pipeline.core.models import (
    QueueMessage,
    analysis_type_for,
    is_valid_kind,
    pipeline_for_kinds,
)


class TestKinds:
    def test_valid_kinds(self):
        assert is_valid_kind("developmental")
        assert is_valid_kind("audiobook-timing")
        assert is_valid_kind("human-edit:chapter-3")
        assert not is_valid_kind("human-edit:  ")
        assert not is_valid_kind("summary")

    def test_pipeline_for_kinds(self):
        assert pipeline_for_kinds(["line-editing"]) == "analysis"
        assert pipeline_for_kinds(["audiobook-samples"]) == "audiobook"
        assert pipeline_for_kinds(["keywords", "audiobook-samples"]) == "assets"

    def test_analysis_type(self):
        assert analysis_type_for("analysis") == "full"
        assert analysis_type_for("assets") == "basic"


class TestQueueMessage:
    def test_wire_format_is_camel_case(self):
        message = QueueMessage(
            manuscript_key="u/m/key",
            report_id="rep12345",
            manuscript_id="m",
            user_id="u",
            pipeline="assets",
            kinds=["keywords"],
        )
        wire = message.to_wire()
        assert '"manuscriptKey":"u/m/key"' in wire
        assert '"reportId":"rep12345"' in wire
        assert QueueMessage.from_wire(wire) == message


class TestIds:
    def test_report_id_shape(self):
        report_id = new_report_id()
        assert len(report_id) == 8
        assert re.fullmatch(r"[A-Za-z0-9_-]{8}", report_id)

    def test_sanitize_filename(self):
        assert sanitize_filename("My Novel (final).docx") == "My_Novel__final_.docx"

    def test_filename_stem(self):
        assert filename_stem("the-storm.v2.txt") == "the-storm.v2"
        assert filename_stem("README") == "README"


class TestErrors:
    def test_stage_failed_names_stage(self):
        error = StageFailed("line-editing", BadModelOutput("model output was not valid JSON"))
        assert error.message == "line-editing stage failed: model output was not valid JSON"
        assert error.to_dict()["stage"] == "line-editing"

    def test_stage_failed_hides_internal_errors(self):
        error = StageFailed("keywords", KeyError("secret internals"))
        assert error.message == "keywords stage failed: internal error"

    def test_quota_exceeded_body(self):
        error = QuotaExceeded("free", 5, 5)
        assert error.http_status == 403
        assert error.to_dict()["planType"] == "free"
