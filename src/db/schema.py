# src/db/schema.py — v1
"""Relational schema shared by the SQLite and Postgres backends.

Types are chosen from the common subset of both dialects: timestamps are
ISO 8601 TEXT, booleans INTEGER, JSON documents TEXT, ids TEXT allocated
by the application.
"""

from __future__ import annotations

from manuscript_pipeline.db.database import BaseDatabase

SCHEMA = """
CREATE TABLE IF NOT EXISTS manuscripts (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    original_filename TEXT NOT NULL,
    storage_key TEXT NOT NULL,
    file_hash TEXT NOT NULL,
    file_type TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'draft'
        CHECK (status IN ('draft', 'queued', 'analyzing', 'analyzed', 'failed')),
    genre TEXT NOT NULL DEFAULT 'general',
    word_count INTEGER NOT NULL DEFAULT 0,
    metadata TEXT,
    flagged_for_review INTEGER NOT NULL DEFAULT 0,
    uploaded_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_manuscripts_user_uploaded
    ON manuscripts (user_id, uploaded_at DESC, id DESC);
CREATE INDEX IF NOT EXISTS idx_manuscripts_user_hash
    ON manuscripts (user_id, file_hash);

CREATE TABLE IF NOT EXISTS jobs (
    report_id TEXT PRIMARY KEY,
    manuscript_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    pipeline TEXT NOT NULL CHECK (pipeline IN ('analysis', 'assets', 'audiobook')),
    genre TEXT NOT NULL DEFAULT 'general',
    style_guide TEXT NOT NULL DEFAULT 'chicago',
    kinds TEXT,
    attempt INTEGER NOT NULL DEFAULT 0,
    parent_report_id TEXT,
    state TEXT NOT NULL DEFAULT 'active'
        CHECK (state IN ('active', 'complete', 'failed', 'cancelled')),
    prior_manuscript_state TEXT,
    total_cost_usd DOUBLE PRECISION NOT NULL DEFAULT 0,
    last_error TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_jobs_one_active
    ON jobs (manuscript_id) WHERE state = 'active';
CREATE INDEX IF NOT EXISTS idx_jobs_manuscript ON jobs (manuscript_id, created_at);

CREATE TABLE IF NOT EXISTS manuscript_artifacts (
    manuscript_id TEXT NOT NULL REFERENCES manuscripts (id) ON DELETE CASCADE,
    kind TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 1,
    report_id TEXT,
    storage_key TEXT NOT NULL,
    size_bytes INTEGER NOT NULL,
    cost_usd DOUBLE PRECISION NOT NULL DEFAULT 0,
    input_tokens INTEGER NOT NULL DEFAULT 0,
    output_tokens INTEGER NOT NULL DEFAULT 0,
    model TEXT,
    created_at TEXT NOT NULL,
    PRIMARY KEY (manuscript_id, kind)
);

CREATE TABLE IF NOT EXISTS subscriptions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    stripe_subscription_id TEXT UNIQUE,
    stripe_customer_id TEXT,
    plan_type TEXT NOT NULL CHECK (plan_type IN ('free', 'pro', 'enterprise')),
    status TEXT NOT NULL,
    current_period_start TEXT NOT NULL,
    current_period_end TEXT NOT NULL,
    cancel_at_period_end INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_subscriptions_user ON subscriptions (user_id, status);

CREATE TABLE IF NOT EXISTS payment_history (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    subscription_id TEXT REFERENCES subscriptions (id) ON DELETE SET NULL,
    stripe_payment_intent_id TEXT,
    stripe_invoice_id TEXT,
    amount INTEGER NOT NULL,
    currency TEXT NOT NULL DEFAULT 'usd',
    payment_type TEXT NOT NULL,
    status TEXT NOT NULL,
    description TEXT,
    metadata TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_payment_history_user ON payment_history (user_id);

CREATE TABLE IF NOT EXISTS usage_tracking (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    subscription_id TEXT,
    manuscript_id TEXT NOT NULL,
    report_id TEXT NOT NULL UNIQUE,
    analysis_type TEXT NOT NULL CHECK (analysis_type IN ('basic', 'full')),
    assets_generated TEXT,
    credits_used INTEGER NOT NULL DEFAULT 1,
    timestamp TEXT NOT NULL,
    billing_period_start TEXT NOT NULL,
    billing_period_end TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_usage_user_period
    ON usage_tracking (user_id, billing_period_start);

CREATE TABLE IF NOT EXISTS audit_log (
    id TEXT PRIMARY KEY,
    user_id TEXT,
    action TEXT NOT NULL,
    resource_type TEXT NOT NULL,
    resource_id TEXT,
    timestamp TEXT NOT NULL,
    ip_address TEXT,
    user_agent TEXT,
    metadata TEXT
);
CREATE INDEX IF NOT EXISTS idx_audit_log_resource ON audit_log (resource_type, resource_id);

CREATE TABLE IF NOT EXISTS cost_tracking (
    id TEXT PRIMARY KEY,
    user_id TEXT,
    manuscript_id TEXT,
    report_id TEXT,
    cost_center TEXT NOT NULL,
    feature_name TEXT NOT NULL,
    operation TEXT NOT NULL,
    cost_usd DOUBLE PRECISION NOT NULL,
    tokens_input INTEGER,
    tokens_output INTEGER,
    model TEXT,
    metadata TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_cost_tracking_report ON cost_tracking (report_id);
"""


async def apply_schema(db: BaseDatabase) -> None:
    """Create all tables and indexes if they do not exist."""
    await db.executescript(SCHEMA)
