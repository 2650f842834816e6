"""SQL access for the employees table. Every statement passes through the interceptor."""

from __future__ import annotations

from typing import Any

from employee_audit.audit.interceptor import OperationInterceptor
from employee_audit.employees.models import Employee, EmployeeInput, PageRequest
from employee_audit.storage import ExecuteResult, SqlExecutor
from employee_audit.utils.time import to_storage_timestamp, utc_now

EMPLOYEE_TABLE = "employees"

EMPLOYEE_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {EMPLOYEE_TABLE} (
    employee_id INTEGER PRIMARY KEY AUTOINCREMENT,
    employee_number TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    furigana TEXT,
    birthday TEXT,
    email TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_employees_name ON {EMPLOYEE_TABLE}(name);
CREATE INDEX IF NOT EXISTS idx_employees_furigana ON {EMPLOYEE_TABLE}(furigana);
"""


def _like(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class EmployeeRepository:
    def __init__(self, executor: SqlExecutor, interceptor: OperationInterceptor) -> None:
        self._executor = executor
        self._interceptor = interceptor

    async def _select_one(self, sql: str, params: tuple[Any, ...]) -> Employee | None:
        row = await self._interceptor.intercept_select(
            sql, params, lambda: self._executor.fetch_one(sql, params)
        )
        return Employee.from_row(row) if row is not None else None

    async def _select_many(self, sql: str, params: tuple[Any, ...]) -> list[Employee]:
        rows = await self._interceptor.intercept_select(
            sql, params, lambda: self._executor.fetch_all(sql, params)
        )
        return [Employee.from_row(row) for row in rows]

    async def _count(self, sql: str, params: tuple[Any, ...]) -> int:
        row = await self._interceptor.intercept_select(
            sql, params, lambda: self._executor.fetch_one(sql, params)
        )
        return int(row["total"]) if row else 0

    async def find_by_id(self, employee_id: int) -> Employee | None:
        return await self._select_one(
            f"SELECT * FROM {EMPLOYEE_TABLE} WHERE employee_id = ?", (employee_id,)
        )

    async def find_by_employee_number(self, employee_number: str) -> Employee | None:
        return await self._select_one(
            f"SELECT * FROM {EMPLOYEE_TABLE} WHERE employee_number = ?", (employee_number,)
        )

    async def exists_by_employee_number(self, employee_number: str) -> bool:
        total = await self._count(
            f"SELECT COUNT(*) AS total FROM {EMPLOYEE_TABLE} WHERE employee_number = ?",
            (employee_number,),
        )
        return total > 0

    async def insert(self, data: EmployeeInput) -> int:
        now = to_storage_timestamp(utc_now())
        sql = (
            f"INSERT INTO {EMPLOYEE_TABLE} "
            "(employee_number, name, furigana, birthday, email, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)"
        )
        params = (
            data.employee_number,
            data.name,
            data.furigana,
            data.birthday.isoformat() if data.birthday else None,
            data.email,
            now,
            now,
        )
        result: ExecuteResult = await self._interceptor.intercept_insert(
            sql, params, lambda: self._executor.execute(sql, params)
        )
        if result.lastrowid is None:
            raise RuntimeError("Insert did not return a row id")
        return result.lastrowid

    async def update(self, employee_id: int, data: EmployeeInput) -> int:
        sql = (
            f"UPDATE {EMPLOYEE_TABLE} SET employee_number = ?, name = ?, furigana = ?, "
            "birthday = ?, email = ?, updated_at = ? WHERE employee_id = ?"
        )
        params = (
            data.employee_number,
            data.name,
            data.furigana,
            data.birthday.isoformat() if data.birthday else None,
            data.email,
            to_storage_timestamp(utc_now()),
            employee_id,
        )
        result: ExecuteResult = await self._interceptor.intercept_update(
            sql, params, lambda: self._executor.execute(sql, params)
        )
        return result.rowcount

    async def delete_by_id(self, employee_id: int) -> int:
        sql = f"DELETE FROM {EMPLOYEE_TABLE} WHERE employee_id = ?"
        params = (employee_id,)
        result: ExecuteResult = await self._interceptor.intercept_delete(
            sql, params, lambda: self._executor.execute(sql, params)
        )
        return result.rowcount

    async def list_page(self, page: PageRequest) -> tuple[list[Employee], int]:
        rows = await self._select_many(
            f"SELECT * FROM {EMPLOYEE_TABLE} {page.order_clause} LIMIT ? OFFSET ?",
            (page.size, page.offset),
        )
        total = await self._count(f"SELECT COUNT(*) AS total FROM {EMPLOYEE_TABLE}", ())
        return rows, total

    async def search(
        self, column: str, term: str, page: PageRequest
    ) -> tuple[list[Employee], int]:
        if column not in ("name", "furigana"):
            raise ValueError(f"Unsupported search column: {column}")
        pattern = _like(term)
        rows = await self._select_many(
            f"SELECT * FROM {EMPLOYEE_TABLE} WHERE {column} LIKE ? ESCAPE '\\' "
            f"{page.order_clause} LIMIT ? OFFSET ?",
            (pattern, page.size, page.offset),
        )
        total = await self._count(
            f"SELECT COUNT(*) AS total FROM {EMPLOYEE_TABLE} WHERE {column} LIKE ? ESCAPE '\\'",
            (pattern,),
        )
        return rows, total
