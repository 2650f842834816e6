"""Wraps database calls with timing, metrics and a detached audit write."""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Mapping, Sequence, TypeVar

from employee_audit.audit.models import OperationType, normalize_operation_type
from employee_audit.audit.recorder import AuditRecorder
from employee_audit.audit.sql_parsing import (
    extract_record_id,
    extract_table_name,
    statement_verb,
)
from employee_audit.monitoring.database_metrics import DatabaseMetrics
from employee_audit.utils.background import BackgroundTasks, Detached

logger = logging.getLogger(__name__)

T = TypeVar("T")

Bindings = Sequence[Any] | Mapping[str, Any] | None


def _affected_rows(result: object) -> int:
    rowcount = getattr(result, "rowcount", None)
    if isinstance(rowcount, int) and rowcount >= 0:
        return rowcount
    if isinstance(result, list):
        return len(result)
    if result is None:
        return 0
    return 1


def _bindings_snapshot(bindings: Bindings) -> dict[str, Any] | None:
    if bindings is None:
        return None
    if isinstance(bindings, Mapping):
        return dict(bindings) or None
    values = list(bindings)
    if not values:
        return None
    return {f"param{index}": value for index, value in enumerate(values, start=1)}


class OperationInterceptor:
    """Runs a database call and audits it once it settles.

    The caller gets the wrapped call's own result or exception. The audit
    write is spawned as a detached task after the outcome is known and is
    never awaited on the caller's path. A call cancelled before it settles
    produces no audit entry.
    """

    def __init__(
        self,
        recorder: AuditRecorder,
        database_metrics: DatabaseMetrics | None = None,
        background: BackgroundTasks | None = None,
        enabled: bool = True,
    ) -> None:
        self._recorder = recorder
        self._database_metrics = database_metrics
        self.background = background or BackgroundTasks("audit")
        self.enabled = enabled

    async def intercept(
        self,
        sql: str,
        bindings: Bindings,
        operation_label: str | None,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        label = operation_label or statement_verb(sql) or "SELECT"
        started = time.perf_counter()
        try:
            result = await operation()
        except Exception as exc:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            self._on_failure(sql, label, elapsed_ms, exc)
            raise
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        self._on_success(sql, bindings, label, elapsed_ms, result)
        return result

    async def intercept_insert(
        self, sql: str, bindings: Bindings, operation: Callable[[], Awaitable[T]]
    ) -> T:
        return await self.intercept(sql, bindings, "INSERT", operation)

    async def intercept_update(
        self, sql: str, bindings: Bindings, operation: Callable[[], Awaitable[T]]
    ) -> T:
        return await self.intercept(sql, bindings, "UPDATE", operation)

    async def intercept_delete(
        self, sql: str, bindings: Bindings, operation: Callable[[], Awaitable[T]]
    ) -> T:
        return await self.intercept(sql, bindings, "DELETE", operation)

    async def intercept_select(
        self, sql: str, bindings: Bindings, operation: Callable[[], Awaitable[T]]
    ) -> T:
        return await self.intercept(sql, bindings, "SELECT", operation)

    def _operation_type(self, label: str) -> OperationType:
        try:
            return normalize_operation_type(label)
        except ValueError:
            return "SELECT"

    def _on_success(
        self,
        sql: str,
        bindings: Bindings,
        label: str,
        elapsed_ms: int,
        result: object,
    ) -> Detached | None:
        operation_type = self._operation_type(label)
        if self._database_metrics is not None:
            self._database_metrics.record_query(operation_type, sql, elapsed_ms)
        if not self.enabled:
            return None
        new_values = (
            _bindings_snapshot(bindings) if operation_type in ("INSERT", "UPDATE") else None
        )
        return self.background.spawn(
            self._recorder.log_successful_operation(
                operation_type,
                extract_table_name(sql),
                extract_record_id(sql),
                None,
                new_values,
                sql,
                elapsed_ms,
                _affected_rows(result),
            )
        )

    def _on_failure(
        self,
        sql: str,
        label: str,
        elapsed_ms: int,
        exc: Exception,
    ) -> Detached | None:
        operation_type = self._operation_type(label)
        if self._database_metrics is not None:
            self._database_metrics.record_error(operation_type, exc)
        if not self.enabled:
            return None
        logger.debug("Intercepted %s failed after %dms: %s", operation_type, elapsed_ms, exc)
        return self.background.spawn(
            self._recorder.log_failed_operation(
                operation_type,
                extract_table_name(sql),
                extract_record_id(sql),
                sql,
                elapsed_ms,
                str(exc) or type(exc).__name__,
            )
        )
