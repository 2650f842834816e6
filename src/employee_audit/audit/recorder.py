"""Builds, persists and queries database audit entries."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping

from employee_audit.audit.db import AuditLogStore
from employee_audit.audit.models import (
    STATUS_FAILURE,
    STATUS_ROLLBACK,
    STATUS_SUCCESS,
    AuditLogEntry,
    OperationStatus,
    OperationType,
)
from employee_audit.context import SYSTEM_USER, get_request_context_optional
from employee_audit.events import StructuredEventLogger
from employee_audit.logging_utils import AUDIT_CHANNEL, get_channel_logger
from employee_audit.monitoring.log_metrics import SYSTEM_ERROR
from employee_audit.utils.serialization import json_default
from employee_audit.utils.time import utc_now

logger = logging.getLogger(__name__)

DEFAULT_ROLLBACK_REASON = "Transaction rolled back"


def serialize_values(values: Mapping[str, Any] | None) -> str | None:
    """Render a value snapshot as JSON text; ``None`` for nothing to record."""
    if not values:
        return None
    try:
        return json.dumps(
            dict(values),
            default=json_default,
            ensure_ascii=False,
            sort_keys=True,
        )
    except (TypeError, ValueError) as exc:
        logger.warning("Failed to serialize audit values: %s", exc)
        return "{}"


@dataclass(frozen=True)
class AuditStatistics:
    last_24_hours: int
    last_7_days: int
    last_30_days: int
    total_inserts: int
    total_updates: int
    total_deletes: int
    total_selects: int
    total_success: int
    total_failures: int
    total_rollbacks: int
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "last24Hours": self.last_24_hours,
            "last7Days": self.last_7_days,
            "last30Days": self.last_30_days,
            "totalInserts": self.total_inserts,
            "totalUpdates": self.total_updates,
            "totalDeletes": self.total_deletes,
            "totalSelects": self.total_selects,
            "totalSuccess": self.total_success,
            "totalFailures": self.total_failures,
            "totalRollbacks": self.total_rollbacks,
            "timestamp": self.timestamp.isoformat(),
        }


class AuditRecorder:
    """Write path never raises; read and cleanup paths propagate store errors."""

    def __init__(self, store: AuditLogStore, events: StructuredEventLogger) -> None:
        self._store = store
        self._events = events
        self._audit_channel = get_channel_logger(AUDIT_CHANNEL)

    async def log_database_operation(
        self,
        operation_type: OperationType,
        table_name: str,
        record_id: str | None,
        old_values: Mapping[str, Any] | None,
        new_values: Mapping[str, Any] | None,
        sql_statement: str | None,
        execution_time_ms: int | None,
        affected_rows: int | None,
        status: OperationStatus,
        error_message: str | None,
    ) -> None:
        try:
            ctx = get_request_context_optional()
            user_id = ctx.user_id if ctx is not None and ctx.user_id else SYSTEM_USER
            entry = AuditLogEntry(
                operation_type=operation_type,
                table_name=table_name,
                record_id=record_id or "unknown",
                user_id=user_id,
                session_id=ctx.session_id if ctx else None,
                request_id=ctx.request_id if ctx else None,
                ip_address=ctx.ip_address if ctx else None,
                user_agent=ctx.user_agent if ctx else None,
                old_values=serialize_values(old_values),
                new_values=serialize_values(new_values),
                sql_statement=sql_statement,
                execution_time_ms=execution_time_ms,
                affected_rows=affected_rows,
                error_message=error_message,
                operation_status=status,
                created_at=utc_now(),
                created_by=user_id,
            )
            saved = await self._store.create(entry)
        except Exception as exc:
            logger.error(
                "Failed to save database audit log: operation=%s table=%s error=%s",
                operation_type,
                table_name,
                exc,
            )
            self._events.log_error(
                SYSTEM_ERROR,
                "audit-recorder",
                f"Failed to save database audit log: {exc}",
                exc=exc,
            )
            return

        logger.debug("Database audit log saved: id=%s", saved.id)
        self._audit_channel.info(
            "Database operation audit: operationType=%s, tableName=%s, recordId=%s, "
            "status=%s, executionTime=%sms",
            saved.operation_type,
            saved.table_name,
            saved.record_id,
            saved.operation_status,
            saved.execution_time_ms,
        )
        self._events.log_data_access(
            saved.operation_type,
            saved.table_name,
            saved.record_id,
            old_values=saved.old_values_mapping(),
            new_values=saved.new_values_mapping(),
        )

    async def log_successful_operation(
        self,
        operation_type: OperationType,
        table_name: str,
        record_id: str | None,
        old_values: Mapping[str, Any] | None,
        new_values: Mapping[str, Any] | None,
        sql_statement: str | None,
        execution_time_ms: int | None,
        affected_rows: int | None,
    ) -> None:
        await self.log_database_operation(
            operation_type,
            table_name,
            record_id,
            old_values,
            new_values,
            sql_statement,
            execution_time_ms,
            affected_rows,
            STATUS_SUCCESS,
            None,
        )

    async def log_failed_operation(
        self,
        operation_type: OperationType,
        table_name: str,
        record_id: str | None,
        sql_statement: str | None,
        execution_time_ms: int | None,
        error_message: str | None,
    ) -> None:
        await self.log_database_operation(
            operation_type,
            table_name,
            record_id,
            None,
            None,
            sql_statement,
            execution_time_ms,
            0,
            STATUS_FAILURE,
            error_message or "Unknown error",
        )

    async def log_rollback_operation(
        self,
        operation_type: OperationType,
        table_name: str,
        record_id: str | None,
        sql_statement: str | None,
        execution_time_ms: int | None,
        reason: str | None = None,
    ) -> None:
        await self.log_database_operation(
            operation_type,
            table_name,
            record_id,
            None,
            None,
            sql_statement,
            execution_time_ms,
            0,
            STATUS_ROLLBACK,
            reason or DEFAULT_ROLLBACK_REASON,
        )

    async def log_insert_operation(
        self,
        table_name: str,
        record_id: str | None,
        new_values: Mapping[str, Any] | None,
        sql_statement: str | None,
        execution_time_ms: int | None,
        affected_rows: int | None = 1,
    ) -> None:
        await self.log_successful_operation(
            "INSERT", table_name, record_id, None, new_values,
            sql_statement, execution_time_ms, affected_rows,
        )

    async def log_update_operation(
        self,
        table_name: str,
        record_id: str | None,
        old_values: Mapping[str, Any] | None,
        new_values: Mapping[str, Any] | None,
        sql_statement: str | None,
        execution_time_ms: int | None,
        affected_rows: int | None = 1,
    ) -> None:
        await self.log_successful_operation(
            "UPDATE", table_name, record_id, old_values, new_values,
            sql_statement, execution_time_ms, affected_rows,
        )

    async def log_delete_operation(
        self,
        table_name: str,
        record_id: str | None,
        old_values: Mapping[str, Any] | None,
        sql_statement: str | None,
        execution_time_ms: int | None,
        affected_rows: int | None = 1,
    ) -> None:
        await self.log_successful_operation(
            "DELETE", table_name, record_id, old_values, None,
            sql_statement, execution_time_ms, affected_rows,
        )

    async def log_select_operation(
        self,
        table_name: str,
        record_id: str | None,
        sql_statement: str | None,
        execution_time_ms: int | None,
        affected_rows: int | None = None,
    ) -> None:
        await self.log_successful_operation(
            "SELECT", table_name, record_id, None, None,
            sql_statement, execution_time_ms, affected_rows,
        )

    # Queries

    async def find_by_operation_type(self, operation_type: OperationType) -> list[AuditLogEntry]:
        return await self._store.find_by_operation_type(operation_type)

    async def find_by_table_name(self, table_name: str) -> list[AuditLogEntry]:
        return await self._store.find_by_table_name(table_name)

    async def find_by_user_id(self, user_id: str) -> list[AuditLogEntry]:
        return await self._store.find_by_user_id(user_id)

    async def find_by_session_id(self, session_id: str) -> list[AuditLogEntry]:
        return await self._store.find_by_session_id(session_id)

    async def find_by_request_id(self, request_id: str) -> list[AuditLogEntry]:
        return await self._store.find_by_request_id(request_id)

    async def find_by_record_id(self, record_id: str) -> list[AuditLogEntry]:
        return await self._store.find_by_record_id(record_id)

    async def find_by_operation_status(self, status: OperationStatus) -> list[AuditLogEntry]:
        return await self._store.find_by_operation_status(status)

    async def find_by_created_at_between(
        self, start: datetime, end: datetime
    ) -> list[AuditLogEntry]:
        return await self._store.find_by_created_at_between(start, end)

    async def find_by_table_name_and_record_id(
        self, table_name: str, record_id: str
    ) -> list[AuditLogEntry]:
        return await self._store.find_by_table_name_and_record_id(table_name, record_id)

    async def find_by_user_id_and_created_at_between(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[AuditLogEntry]:
        return await self._store.find_by_user_id_and_created_at_between(user_id, start, end)

    async def find_by_operation_type_and_table_name(
        self, operation_type: OperationType, table_name: str
    ) -> list[AuditLogEntry]:
        return await self._store.find_by_operation_type_and_table_name(operation_type, table_name)

    async def find_recent_logs(self, limit: int) -> list[AuditLogEntry]:
        if limit < 1:
            raise ValueError("limit must be positive")
        return await self._store.find_recent(limit)

    async def find_error_logs(self, start: datetime, end: datetime) -> list[AuditLogEntry]:
        return await self._store.find_errors_between(start, end)

    async def find_error_logs_by_user_id(self, user_id: str) -> list[AuditLogEntry]:
        return await self._store.find_errors_by_user_id(user_id)

    async def get_audit_statistics(self) -> AuditStatistics:
        now = utc_now()
        (
            last_24_hours,
            last_7_days,
            last_30_days,
            inserts,
            updates,
            deletes,
            selects,
            success,
            failures,
            rollbacks,
        ) = await asyncio.gather(
            self._store.count_by_created_at_between(now - timedelta(hours=24), now),
            self._store.count_by_created_at_between(now - timedelta(days=7), now),
            self._store.count_by_created_at_between(now - timedelta(days=30), now),
            self._store.count_by_operation_type("INSERT"),
            self._store.count_by_operation_type("UPDATE"),
            self._store.count_by_operation_type("DELETE"),
            self._store.count_by_operation_type("SELECT"),
            self._store.count_by_operation_status(STATUS_SUCCESS),
            self._store.count_by_operation_status(STATUS_FAILURE),
            self._store.count_by_operation_status(STATUS_ROLLBACK),
        )
        return AuditStatistics(
            last_24_hours=last_24_hours,
            last_7_days=last_7_days,
            last_30_days=last_30_days,
            total_inserts=inserts,
            total_updates=updates,
            total_deletes=deletes,
            total_selects=selects,
            total_success=success,
            total_failures=failures,
            total_rollbacks=rollbacks,
            timestamp=now,
        )

    async def cleanup_old_audit_logs(self, retention_days: int) -> int:
        """Delete entries older than ``retention_days``. Store errors propagate."""
        if retention_days < 0:
            raise ValueError("retention_days must be >= 0")
        cutoff = utc_now() - timedelta(days=retention_days)
        deleted = await self._store.delete_created_before(cutoff)
        logger.info(
            "Cleaned up %d expired audit logs older than %s (retention %d days)",
            deleted,
            cutoff.isoformat(),
            retention_days,
        )
        return deleted
