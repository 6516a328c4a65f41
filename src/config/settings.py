# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings: credentials,
upload limits, queue/stage deadlines, cache TTLs, plan limits and the
backend selection for every external collaborator.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIB = 1024 * 1024
DAY_SECONDS = 24 * 60 * 60
# Longest plan (analysis) runs this many levels back to back.
MAX_PLAN_LEVELS = 3


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


def _default_cache_ttls() -> dict[str, int]:
    return {"manuscript": 900, "analysis_status": 3600, "list": 300}


def _default_plan_limits() -> dict[str, int]:
    return {"free": 5, "pro": 10, "enterprise": 999_999}


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["development", "test", "production"] = "development"

    # === Credentials ===
    claude_api_key: str = ""
    stripe_secret_key: str = ""

    # === LLM ===
    llm_model: str = "claude-sonnet-4-20250514"
    # Per-stage model override, e.g. {"keywords": "claude-haiku-4-5-20251001"}
    llm_stage_models: dict[str, str] = Field(default_factory=dict)
    llm_max_tokens: int = 4096
    llm_deadline_seconds: float = 120.0
    llm_retry_max_attempts: int = 3
    llm_retry_base_delay_s: float = 1.0
    llm_retry_backoff_factor: float = 2.0
    llm_retry_jitter: float = 0.25

    # === Upload limits ===
    max_file_bytes: int = 50 * MIB
    max_pages: int = 828

    # === Queue / worker ===
    queue_backend: Literal["memory", "redis"] = "memory"
    queue_max_attempts: int = 5
    queue_visibility_timeout_seconds: int = 2400
    queue_retry_delay_seconds: int = 30
    queue_poll_interval_seconds: float = 1.0
    stage_deadline_seconds: float = 600.0

    # === Status / report index ===
    status_ttl_seconds: int = 7 * DAY_SECONDS
    report_id_ttl_seconds: int = 30 * DAY_SECONDS

    # === Cache ===
    cache_backend: Literal["memory", "redis"] = "memory"
    cache_ttl_seconds: dict[str, int] = Field(default_factory=_default_cache_ttls)
    redis_url: str = ""

    # === Object store ===
    object_store: Literal["local", "s3"] = "local"
    object_store_root: Path = Path("~/.manuscript_pipeline/objects")
    s3_bucket: str = ""
    s3_prefix: str = ""
    s3_region: str = ""
    s3_endpoint_url: str = ""

    # === Relational store ===
    database: Literal["sqlite", "postgres"] = "sqlite"
    sqlite_path: Path = Path("~/.manuscript_pipeline/pipeline.db")
    database_url: str = ""

    # === Plans ===
    plan_limits: dict[str, int] = Field(default_factory=_default_plan_limits)
    default_style_guide: str = "chicago"
    default_genre: str = "general"

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator(
        "max_file_bytes",
        "max_pages",
        "queue_max_attempts",
        "stage_deadline_seconds",
        "llm_deadline_seconds",
        "llm_retry_max_attempts",
    )
    @classmethod
    def validate_positive(cls, v: float, info) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.environment == "production" and not self.claude_api_key:
            errors.append("CLAUDE_API_KEY is required in production")

        if "redis" in (self.queue_backend, self.cache_backend) and not self.redis_url:
            errors.append("REDIS_URL must be set when a redis backend is selected")

        if self.object_store == "s3" and not self.s3_bucket:
            errors.append("S3_BUCKET must be set when OBJECT_STORE=s3")

        if self.database == "postgres" and not self.database_url:
            errors.append("DATABASE_URL must be set when DATABASE=postgres")

        if "free" not in self.plan_limits:
            errors.append("PLAN_LIMITS must define the 'free' plan")

        worst_case_job = MAX_PLAN_LEVELS * self.stage_deadline_seconds
        if self.queue_visibility_timeout_seconds <= worst_case_job:
            errors.append(
                "QUEUE_VISIBILITY_TIMEOUT_SECONDS must exceed "
                f"{MAX_PLAN_LEVELS} x STAGE_DEADLINE_SECONDS ({worst_case_job:.0f}s)"
            )

        missing_ttls = {"manuscript", "analysis_status", "list"} - set(self.cache_ttl_seconds)
        if missing_ttls:
            errors.append(f"CACHE_TTL_SECONDS missing views: {sorted(missing_ttls)}")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    def cache_ttl(self, view: str) -> int:
        """TTL in seconds for a cached view (manuscript, analysis_status, list)."""
        return self.cache_ttl_seconds[view]

    def plan_limit(self, plan_type: str) -> int:
        """Credit limit per billing period; unknown plans fall back to free."""
        return self.plan_limits.get(plan_type, self.plan_limits["free"])


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or one-off commands).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
