# src/db/sqlite_database.py — v1
"""SQLite-backed relational store (DATABASE=sqlite).

Uses stdlib sqlite3, no external dependency. Statements run synchronously
on a single connection; since nothing awaits between BEGIN and COMMIT,
a batch is never interleaved with other coroutines.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any

from manuscript_pipeline.db.database import BaseDatabase, Mode, RunResult, Statement

logger = logging.getLogger(__name__)


class SqliteDatabase(BaseDatabase):
    """SQLite implementation of the prepare/bind adapter."""

    dialect = "sqlite"

    def __init__(self, db_path: Path | str = ":memory:") -> None:
        if str(db_path) != ":memory:":
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            db_path = str(path)
        self._conn = sqlite3.connect(str(db_path), isolation_level=None, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys=ON")
        if str(db_path) != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")

    async def execute(self, sql: str, params: tuple[Any, ...], mode: Mode) -> Any:
        cursor = self._conn.execute(sql, params)
        if mode == "run":
            return RunResult(changes=cursor.rowcount, last_row_id=cursor.lastrowid)
        if mode == "first":
            row = cursor.fetchone()
            return dict(row) if row is not None else None
        return [dict(r) for r in cursor.fetchall()]

    async def batch(self, statements: list[Statement]) -> list[RunResult]:
        results: list[RunResult] = []
        self._conn.execute("BEGIN")
        try:
            for stmt in statements:
                cursor = self._conn.execute(stmt.sql, stmt.params)
                results.append(RunResult(changes=cursor.rowcount, last_row_id=cursor.lastrowid))
        except Exception:
            self._conn.execute("ROLLBACK")
            raise
        self._conn.execute("COMMIT")
        return results

    async def executescript(self, script: str) -> None:
        self._conn.executescript(script)

    async def close(self) -> None:
        self._conn.close()
