# tests/unit/db/test_postgres_database.py — v1
"""Tests for db/postgres_database.py — placeholder rewrite and a mocked psycopg connection."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from manuscript_pipeline.db.database import RunResult
from manuscript_pipeline.db.postgres_database import PostgresDatabase, to_pyformat


class TestToPyformat:
    @pytest.mark.parametrize(
        "sql, expected",
        [
            ("SELECT * FROM jobs WHERE report_id = ?", "SELECT * FROM jobs WHERE report_id = %s"),
            ("UPDATE t SET a = ?, b = ? WHERE c = ?", "UPDATE t SET a = %s, b = %s WHERE c = %s"),
            ("SELECT '?' AS q, ? AS p", "SELECT '?' AS q, %s AS p"),
            ("SELECT a % 2 FROM t WHERE b LIKE 'x%' AND c = ?", "SELECT a %% 2 FROM t WHERE b LIKE 'x%%' AND c = %s"),
            ("SELECT 'it''s?' FROM t WHERE id = ?", "SELECT 'it''s?' FROM t WHERE id = %s"),
        ],
    )
    def test_rewrite(self, sql, expected):
        assert to_pyformat(sql) == expected


def _cursor(rowcount: int = 1, one=None, many=None) -> MagicMock:
    cursor = MagicMock()
    cursor.rowcount = rowcount
    cursor.fetchone = AsyncMock(return_value=one)
    cursor.fetchall = AsyncMock(return_value=many or [])
    return cursor


@pytest.fixture
def conn():
    mock = MagicMock()
    mock.execute = AsyncMock(return_value=_cursor())
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def database(conn):
    db = PostgresDatabase("postgresql://localhost/manuscripts")
    db._conn = conn
    return db


class TestPostgresDatabase:
    @pytest.mark.asyncio
    async def test_run_reports_rowcount(self, database, conn):
        conn.execute.return_value = _cursor(rowcount=2)

        result = await database.execute("UPDATE jobs SET state = ? WHERE report_id = ?", ("failed", "rep1"), "run")

        assert result == RunResult(changes=2)
        conn.execute.assert_awaited_once_with(
            "UPDATE jobs SET state = %s WHERE report_id = %s", ("failed", "rep1")
        )

    @pytest.mark.asyncio
    async def test_first_and_all(self, database, conn):
        conn.execute.return_value = _cursor(one={"id": "ms-0001"}, many=[{"id": "ms-0001"}, {"id": "ms-0002"}])

        assert await database.execute("SELECT id FROM manuscripts WHERE id = ?", ("ms-0001",), "first") == {
            "id": "ms-0001"
        }
        rows = await database.execute("SELECT id FROM manuscripts", (), "all")
        assert [r["id"] for r in rows] == ["ms-0001", "ms-0002"]

    @pytest.mark.asyncio
    async def test_batch_runs_in_one_transaction(self, database, conn):
        conn.execute.side_effect = [_cursor(rowcount=1), _cursor(rowcount=0)]
        first = database.prepare("UPDATE jobs SET state = ? WHERE report_id = ?").bind("complete", "rep1")
        second = database.prepare("UPDATE manuscripts SET status = ? WHERE id = ?").bind("analyzed", "ms-0001")

        results = await database.batch([first, second])

        assert [r.changes for r in results] == [1, 0]
        conn.transaction.assert_called_once_with()
        conn.transaction.return_value.__aenter__.assert_awaited_once()
        conn.transaction.return_value.__aexit__.assert_awaited_once()
        assert [c.args[0] for c in conn.execute.await_args_list] == [
            "UPDATE jobs SET state = %s WHERE report_id = %s",
            "UPDATE manuscripts SET status = %s WHERE id = %s",
        ]

    @pytest.mark.asyncio
    async def test_batch_error_propagates_through_transaction(self, database, conn):
        conn.execute.side_effect = RuntimeError("constraint violated")
        stmt = database.prepare("INSERT INTO jobs (report_id) VALUES (?)").bind("rep1")

        with pytest.raises(RuntimeError):
            await database.batch([stmt])

        exc_type = conn.transaction.return_value.__aexit__.await_args.args[0]
        assert exc_type is RuntimeError

    @pytest.mark.asyncio
    async def test_close_drops_connection(self, database, conn):
        await database.close()
        conn.close.assert_awaited_once()
        assert database._conn is None
        await database.close()
