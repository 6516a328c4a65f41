# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# === ENUM-LIKE LITERALS ===

ManuscriptState = Literal["draft", "queued", "analyzing", "analyzed", "failed"]
PipelineKind = Literal["analysis", "assets", "audiobook"]
JobState = Literal["queued", "running", "stage_done", "complete", "failed", "cancelled"]
JobRowState = Literal["active", "complete", "failed", "cancelled"]
FileType = Literal["pdf", "docx", "doc", "txt", "epub"]
AnalysisType = Literal["basic", "full"]

FILE_TYPES: tuple[str, ...] = ("pdf", "docx", "doc", "txt", "epub")
TERMINAL_JOB_STATES = frozenset({"complete", "failed", "cancelled"})

# === ARTIFACT KINDS ===

ANALYSIS_KINDS: tuple[str, ...] = ("developmental", "line-editing", "copy-editing")
ASSET_KINDS: tuple[str, ...] = (
    "book-description",
    "keywords",
    "categories",
    "author-bio",
    "back-matter",
)
AUDIOBOOK_KINDS: tuple[str, ...] = (
    "audiobook-narration",
    "audiobook-pronunciation",
    "audiobook-timing",
    "audiobook-samples",
    "audiobook-metadata",
)
PIPELINE_KINDS: dict[str, tuple[str, ...]] = {
    "analysis": ANALYSIS_KINDS,
    "assets": ASSET_KINDS + AUDIOBOOK_KINDS,
    "audiobook": AUDIOBOOK_KINDS,
}
HUMAN_EDIT_PREFIX = "human-edit:"


def is_valid_kind(kind: str) -> bool:
    """Agent-produced kinds plus ``human-edit:{chapter}``."""
    if kind.startswith(HUMAN_EDIT_PREFIX):
        return bool(kind[len(HUMAN_EDIT_PREFIX):].strip())
    return any(kind in kinds for kinds in PIPELINE_KINDS.values())


def pipeline_for_kinds(kinds: list[str]) -> str:
    """Smallest pipeline whose stages cover every requested kind."""
    for pipeline in ("analysis", "audiobook", "assets"):
        if all(k in PIPELINE_KINDS[pipeline] for k in kinds):
            return pipeline
    if any(k in ANALYSIS_KINDS for k in kinds):
        return "analysis"
    return "assets"


def analysis_type_for(pipeline: str) -> str:
    return "full" if pipeline == "analysis" else "basic"


# === MANUSCRIPTS & JOBS ===


class Manuscript(BaseModel):
    """One uploaded manuscript."""

    id: str
    user_id: str
    title: str
    genre: str = "general"
    word_count: int = 0
    original_filename: str
    file_hash: str
    storage_key: str
    file_type: FileType
    status: ManuscriptState = "draft"
    metadata: dict[str, Any] = Field(default_factory=dict)
    flagged_for_review: bool = False
    uploaded_at: datetime
    updated_at: datetime

    @property
    def duplicate_of(self) -> str | None:
        return self.metadata.get("duplicate_of")


class Job(BaseModel):
    """One pipeline run, identified by report_id."""

    report_id: str
    manuscript_id: str
    user_id: str
    pipeline: PipelineKind
    genre: str = "general"
    style_guide: str = "chicago"
    kinds: list[str] | None = None
    attempt: int = 0
    parent_report_id: str | None = None
    state: JobRowState = "active"
    prior_manuscript_state: ManuscriptState | None = None
    total_cost_usd: float = 0.0
    last_error: str | None = None
    created_at: datetime
    updated_at: datetime


# === STATUS ===


class StatusTransition(BaseModel):
    state: JobState
    stage: str | None = None
    progress: int
    message: str = ""
    timestamp: datetime


class JobStatus(BaseModel):
    """Externally observable job progress, stored at status:{reportId}."""

    report_id: str
    manuscript_id: str
    pipeline: PipelineKind
    state: JobState = "queued"
    current_stage: str | None = None
    progress: int = Field(default=0, ge=0, le=100)
    message: str = ""
    attempt: int = 0
    error: str | None = None
    timestamp: datetime
    history: list[StatusTransition] = Field(default_factory=list)

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_JOB_STATES

    def public_view(self) -> dict[str, Any]:
        """Shape returned by getStatus."""
        return {
            "reportId": self.report_id,
            "state": self.state,
            "progress": self.progress,
            "currentStage": self.current_stage,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }


# === ARTIFACTS ===


class ArtifactRecord(BaseModel):
    """Relational index row for the latest version of one artifact kind."""

    manuscript_id: str
    kind: str
    version: int = 1
    report_id: str | None = None
    storage_key: str
    size_bytes: int
    cost_usd: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    model: str | None = None
    created_at: datetime

    def summary(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "size": self.size_bytes,
            "cost": self.cost_usd,
            "timestamp": self.created_at.isoformat(),
            "version": self.version,
            "model": self.model,
        }


# === USAGE & QUOTA ===


class UsageEvent(BaseModel):
    """Append-only credit debit recorded once per successful pipeline run."""

    id: str | None = None
    user_id: str
    subscription_id: str | None = None
    manuscript_id: str
    report_id: str
    analysis_type: AnalysisType
    credits_used: int = 1
    billing_period_start: datetime
    billing_period_end: datetime
    timestamp: datetime


class Quota(BaseModel):
    plan_type: str
    plan_limit: int
    used_this_period: int
    period_start: datetime
    period_end: datetime
    subscription_id: str | None = None

    @property
    def exhausted(self) -> bool:
        return self.used_this_period >= self.plan_limit


# === QUEUE ===


class QueueMessage(BaseModel):
    """Pipeline job message; camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    manuscript_key: str
    report_id: str
    manuscript_id: str
    user_id: str
    genre: str = "general"
    style_guide: str = "chicago"
    pipeline: PipelineKind = "analysis"
    kinds: list[str] | None = None
    attempt: int = 0

    def to_wire(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_wire(cls, payload: str | bytes) -> QueueMessage:
        return cls.model_validate_json(payload)


# === INGEST ===


class UploadResult(BaseModel):
    manuscript_id: str
    report_id: str
    status: Literal["queued"] = "queued"
    duplicate_of: str | None = None
