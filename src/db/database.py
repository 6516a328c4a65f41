# src/db/database.py — v1
"""Relational store adapter contract.

Keeps the ``prepare(sql).bind(*args).run() / first() / all()`` surface
with ``?`` placeholders. ``batch()`` executes a list of bound statements
in a single transaction: either all apply or none do.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal

Mode = Literal["run", "first", "all"]


@dataclass(frozen=True)
class RunResult:
    """Outcome of a write statement."""

    changes: int
    last_row_id: int | None = None


class Statement:
    """A prepared statement; ``bind`` returns a new bound copy."""

    def __init__(self, db: BaseDatabase, sql: str, params: tuple[Any, ...] = ()) -> None:
        self._db = db
        self.sql = sql
        self.params = params

    def bind(self, *args: Any) -> Statement:
        return Statement(self._db, self.sql, tuple(args))

    async def run(self) -> RunResult:
        return await self._db.execute(self.sql, self.params, "run")

    async def first(self) -> dict[str, Any] | None:
        return await self._db.execute(self.sql, self.params, "first")

    async def all(self) -> list[dict[str, Any]]:
        return await self._db.execute(self.sql, self.params, "all")

    def __repr__(self) -> str:
        return f"Statement({self.sql!r}, {self.params!r})"


class BaseDatabase(ABC):
    """Unified interface for relational backends."""

    dialect: str = "generic"

    def prepare(self, sql: str) -> Statement:
        return Statement(self, sql)

    @abstractmethod
    async def execute(self, sql: str, params: tuple[Any, ...], mode: Mode) -> Any:
        """Execute one statement outside any explicit transaction."""

    @abstractmethod
    async def batch(self, statements: list[Statement]) -> list[RunResult]:
        """Execute statements atomically in order."""

    @abstractmethod
    async def executescript(self, script: str) -> None:
        """Execute a multi-statement DDL script."""

    async def close(self) -> None:
        """Release connections (no-op by default)."""
