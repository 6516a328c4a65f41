# src/db/postgres_database.py — v2
"""Postgres-backed relational store (DATABASE=postgres).

Requires 'psycopg' package: pip install 'psycopg[binary]'. Queries keep
``?`` placeholders at the adapter surface and are rewritten to ``%s``.
One async connection is shared per worker; a lock serializes access.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from manuscript_pipeline.db.database import BaseDatabase, Mode, RunResult, Statement

logger = logging.getLogger(__name__)


def to_pyformat(sql: str) -> str:
    """Rewrite ``?`` placeholders as ``%s``.

    ``?`` inside string literals is kept. Every ``%`` is doubled, literals
    included, since psycopg scans the whole query for placeholders.
    """
    out: list[str] = []
    in_literal = False
    for ch in sql:
        if ch == "'":
            in_literal = not in_literal
        if ch == "?" and not in_literal:
            out.append("%s")
        elif ch == "%":
            out.append("%%")
        else:
            out.append(ch)
    return "".join(out)


class PostgresDatabase(BaseDatabase):
    """Postgres implementation of the prepare/bind adapter."""

    dialect = "postgres"

    def __init__(self, database_url: str) -> None:
        self._url = database_url
        self._conn: Any = None
        self._lock = asyncio.Lock()

    async def _connection(self) -> Any:
        if self._conn is None:
            try:
                import psycopg
                from psycopg.rows import dict_row
            except ImportError as e:
                raise ImportError(
                    "psycopg required for Postgres store. pip install 'psycopg[binary]'"
                ) from e
            self._conn = await psycopg.AsyncConnection.connect(
                self._url, autocommit=True, row_factory=dict_row
            )
            logger.info("Connected to Postgres")
        return self._conn

    async def execute(self, sql: str, params: tuple[Any, ...], mode: Mode) -> Any:
        async with self._lock:
            conn = await self._connection()
            cursor = await conn.execute(to_pyformat(sql), params)
            if mode == "run":
                return RunResult(changes=cursor.rowcount)
            if mode == "first":
                return await cursor.fetchone()
            return await cursor.fetchall()

    async def batch(self, statements: list[Statement]) -> list[RunResult]:
        results: list[RunResult] = []
        async with self._lock:
            conn = await self._connection()
            async with conn.transaction():
                for stmt in statements:
                    cursor = await conn.execute(to_pyformat(stmt.sql), stmt.params)
                    results.append(RunResult(changes=cursor.rowcount))
        return results

    async def executescript(self, script: str) -> None:
        async with self._lock:
            conn = await self._connection()
            await conn.execute(script)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
