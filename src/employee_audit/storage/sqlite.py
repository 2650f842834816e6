"""SQLite-backed implementation of the async SQL execution capability."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

_SqlValue = str | bytes | int | float | None
SqlParams = Sequence[_SqlValue] | Mapping[str, _SqlValue]


@dataclass(frozen=True)
class ExecuteResult:
    rowcount: int
    lastrowid: int | None = None


class SqlExecutor(Protocol):
    """Minimal async SQL surface consumed by repositories and monitors."""

    dialect: str

    async def execute(self, query: str, params: SqlParams = ()) -> ExecuteResult: ...

    async def fetch_one(self, query: str, params: SqlParams = ()) -> dict[str, Any] | None: ...

    async def fetch_all(self, query: str, params: SqlParams = ()) -> list[dict[str, Any]]: ...

    async def close(self) -> None: ...


class SqliteExecutor:
    """One shared connection guarded by a lock; calls are pushed to a worker thread."""

    dialect = "sqlite"

    def __init__(self, path: str, wal: bool = True) -> None:
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._closed = False
        if wal and path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

    def init_schema(self, script: str) -> None:
        with self._lock:
            self._conn.executescript(script)
            self._conn.commit()

    def _execute_sync(self, query: str, params: SqlParams) -> ExecuteResult:
        with self._lock:
            cursor = self._conn.execute(query, params)
            self._conn.commit()
            return ExecuteResult(rowcount=cursor.rowcount, lastrowid=cursor.lastrowid)

    def _fetch_one_sync(self, query: str, params: SqlParams) -> dict[str, Any] | None:
        with self._lock:
            row = self._conn.execute(query, params).fetchone()
        return dict(row) if row is not None else None

    def _fetch_all_sync(self, query: str, params: SqlParams) -> list[dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def _close_sync(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True

    async def execute(self, query: str, params: SqlParams = ()) -> ExecuteResult:
        return await asyncio.to_thread(self._execute_sync, query, params)

    async def fetch_one(self, query: str, params: SqlParams = ()) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._fetch_one_sync, query, params)

    async def fetch_all(self, query: str, params: SqlParams = ()) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._fetch_all_sync, query, params)

    async def close(self) -> None:
        await asyncio.to_thread(self._close_sync)

    @property
    def closed(self) -> bool:
        return self._closed
