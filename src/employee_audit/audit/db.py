"""Persistence for database audit entries."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Any, Sequence

from employee_audit.audit.models import AuditLogEntry, STATUS_FAILURE
from employee_audit.storage import SqlExecutor
from employee_audit.utils.time import from_storage_timestamp, to_storage_timestamp

AUDIT_TABLE = "database_audit_logs"

AUDIT_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {AUDIT_TABLE} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    operation_type TEXT NOT NULL,
    table_name TEXT NOT NULL,
    record_id TEXT,
    user_id TEXT,
    session_id TEXT,
    request_id TEXT,
    ip_address TEXT,
    user_agent TEXT,
    old_values TEXT,
    new_values TEXT,
    sql_statement TEXT,
    execution_time_ms INTEGER,
    affected_rows INTEGER,
    error_message TEXT,
    operation_status TEXT NOT NULL,
    created_at TEXT NOT NULL,
    created_by TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_created_at ON {AUDIT_TABLE}(created_at);
CREATE INDEX IF NOT EXISTS idx_audit_operation_type ON {AUDIT_TABLE}(operation_type);
CREATE INDEX IF NOT EXISTS idx_audit_table_name ON {AUDIT_TABLE}(table_name);
CREATE INDEX IF NOT EXISTS idx_audit_user_id ON {AUDIT_TABLE}(user_id);
CREATE INDEX IF NOT EXISTS idx_audit_request_id ON {AUDIT_TABLE}(request_id);
"""

_COLUMNS = (
    "operation_type",
    "table_name",
    "record_id",
    "user_id",
    "session_id",
    "request_id",
    "ip_address",
    "user_agent",
    "old_values",
    "new_values",
    "sql_statement",
    "execution_time_ms",
    "affected_rows",
    "error_message",
    "operation_status",
    "created_at",
    "created_by",
)

_ORDER = "ORDER BY created_at DESC, id DESC"


def _row_to_entry(row: dict[str, Any]) -> AuditLogEntry:
    data = dict(row)
    data["created_at"] = from_storage_timestamp(data["created_at"])
    return AuditLogEntry(**data)


class AuditLogStore:
    """Query, count and delete operations over ``database_audit_logs``.

    Every finder returns entries newest first.
    """

    def __init__(self, executor: SqlExecutor) -> None:
        self._executor = executor

    async def create(self, entry: AuditLogEntry) -> AuditLogEntry:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        params = tuple(
            to_storage_timestamp(entry.created_at)
            if column == "created_at"
            else getattr(entry, column)
            for column in _COLUMNS
        )
        result = await self._executor.execute(
            f"INSERT INTO {AUDIT_TABLE} ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
            params,
        )
        return replace(entry, id=result.lastrowid)

    async def get(self, entry_id: int) -> AuditLogEntry | None:
        row = await self._executor.fetch_one(
            f"SELECT * FROM {AUDIT_TABLE} WHERE id = ?", (entry_id,)
        )
        return _row_to_entry(row) if row is not None else None

    async def _find(self, where: str, params: Sequence[Any], limit: int | None = None) -> list[AuditLogEntry]:
        query = f"SELECT * FROM {AUDIT_TABLE}"
        if where:
            query += f" WHERE {where}"
        query += f" {_ORDER}"
        if limit is not None:
            query += " LIMIT ?"
            params = (*params, limit)
        rows = await self._executor.fetch_all(query, tuple(params))
        return [_row_to_entry(row) for row in rows]

    async def find_by_operation_type(self, operation_type: str) -> list[AuditLogEntry]:
        return await self._find("operation_type = ?", (operation_type,))

    async def find_by_table_name(self, table_name: str) -> list[AuditLogEntry]:
        return await self._find("table_name = ?", (table_name,))

    async def find_by_user_id(self, user_id: str) -> list[AuditLogEntry]:
        return await self._find("user_id = ?", (user_id,))

    async def find_by_session_id(self, session_id: str) -> list[AuditLogEntry]:
        return await self._find("session_id = ?", (session_id,))

    async def find_by_request_id(self, request_id: str) -> list[AuditLogEntry]:
        return await self._find("request_id = ?", (request_id,))

    async def find_by_record_id(self, record_id: str) -> list[AuditLogEntry]:
        return await self._find("record_id = ?", (record_id,))

    async def find_by_operation_status(self, status: str) -> list[AuditLogEntry]:
        return await self._find("operation_status = ?", (status,))

    async def find_by_created_at_between(
        self, start: datetime, end: datetime
    ) -> list[AuditLogEntry]:
        return await self._find(
            "created_at BETWEEN ? AND ?",
            (to_storage_timestamp(start), to_storage_timestamp(end)),
        )

    async def find_by_table_name_and_record_id(
        self, table_name: str, record_id: str
    ) -> list[AuditLogEntry]:
        return await self._find("table_name = ? AND record_id = ?", (table_name, record_id))

    async def find_by_user_id_and_created_at_between(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[AuditLogEntry]:
        return await self._find(
            "user_id = ? AND created_at BETWEEN ? AND ?",
            (user_id, to_storage_timestamp(start), to_storage_timestamp(end)),
        )

    async def find_by_operation_type_and_table_name(
        self, operation_type: str, table_name: str
    ) -> list[AuditLogEntry]:
        return await self._find(
            "operation_type = ? AND table_name = ?", (operation_type, table_name)
        )

    async def find_recent(self, limit: int) -> list[AuditLogEntry]:
        return await self._find("", (), limit=limit)

    async def find_errors_between(self, start: datetime, end: datetime) -> list[AuditLogEntry]:
        return await self._find(
            "operation_status = ? AND created_at BETWEEN ? AND ?",
            (STATUS_FAILURE, to_storage_timestamp(start), to_storage_timestamp(end)),
        )

    async def find_errors_by_user_id(self, user_id: str) -> list[AuditLogEntry]:
        return await self._find(
            "operation_status = ? AND user_id = ?", (STATUS_FAILURE, user_id)
        )

    async def _count(self, where: str, params: Sequence[Any]) -> int:
        row = await self._executor.fetch_one(
            f"SELECT COUNT(*) AS total FROM {AUDIT_TABLE} WHERE {where}", tuple(params)
        )
        return int(row["total"]) if row else 0

    async def count_by_created_at_between(self, start: datetime, end: datetime) -> int:
        return await self._count(
            "created_at BETWEEN ? AND ?",
            (to_storage_timestamp(start), to_storage_timestamp(end)),
        )

    async def count_by_operation_type(self, operation_type: str) -> int:
        return await self._count("operation_type = ?", (operation_type,))

    async def count_by_operation_status(self, status: str) -> int:
        return await self._count("operation_status = ?", (status,))

    async def delete_created_before(self, cutoff: datetime) -> int:
        result = await self._executor.execute(
            f"DELETE FROM {AUDIT_TABLE} WHERE created_at < ?",
            (to_storage_timestamp(cutoff),),
        )
        return max(result.rowcount, 0)
