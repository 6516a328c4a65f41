# src/db/database_factory.py — v1
"""Factory: instantiate the relational store from configuration."""

from __future__ import annotations

from manuscript_pipeline.config.settings import Settings
from manuscript_pipeline.db.database import BaseDatabase


def create_database(settings: Settings) -> BaseDatabase:
    """Create the relational backend selected by DATABASE.

    Raises:
        ValueError: If the backend is not supported.
    """
    if settings.database == "sqlite":
        from manuscript_pipeline.db.sqlite_database import SqliteDatabase
        return SqliteDatabase(settings.sqlite_path)

    if settings.database == "postgres":
        from manuscript_pipeline.db.postgres_database import PostgresDatabase
        return PostgresDatabase(settings.database_url)

    raise ValueError(f"Unsupported database: {settings.database!r}")
