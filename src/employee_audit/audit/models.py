"""Data models for database audit records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Mapping

from employee_audit.utils.serialization import loads_mapping

OperationType = Literal["INSERT", "UPDATE", "DELETE", "SELECT"]
OperationStatus = Literal["SUCCESS", "FAILURE", "ROLLBACK"]

OPERATION_TYPES: frozenset[str] = frozenset({"INSERT", "UPDATE", "DELETE", "SELECT"})
OPERATION_STATUSES: frozenset[str] = frozenset({"SUCCESS", "FAILURE", "ROLLBACK"})

STATUS_SUCCESS: OperationStatus = "SUCCESS"
STATUS_FAILURE: OperationStatus = "FAILURE"
STATUS_ROLLBACK: OperationStatus = "ROLLBACK"


def normalize_operation_type(value: str) -> OperationType:
    candidate = value.strip().upper()
    if candidate not in OPERATION_TYPES:
        raise ValueError(f"Unknown operation type: {value!r}")
    return candidate  # type: ignore[return-value]


def normalize_operation_status(value: str) -> OperationStatus:
    candidate = value.strip().upper()
    if candidate not in OPERATION_STATUSES:
        raise ValueError(f"Unknown operation status: {value!r}")
    return candidate  # type: ignore[return-value]


@dataclass(frozen=True)
class AuditLogEntry:
    """One persisted observation of a database operation.

    ``old_values``/``new_values`` hold the JSON text written to storage;
    ``old_values_mapping()``/``new_values_mapping()`` decode them.
    ``id`` is ``None`` until the store assigns one.
    """

    operation_type: OperationType
    table_name: str
    record_id: str
    user_id: str
    session_id: str | None
    request_id: str | None
    ip_address: str | None
    user_agent: str | None
    old_values: str | None
    new_values: str | None
    sql_statement: str | None
    execution_time_ms: int | None
    affected_rows: int | None
    error_message: str | None
    operation_status: OperationStatus
    created_at: datetime
    created_by: str
    id: int | None = None

    def __post_init__(self) -> None:
        if self.operation_status == STATUS_SUCCESS and self.error_message is not None:
            raise ValueError("SUCCESS entries cannot carry an error message")
        if self.operation_status != STATUS_SUCCESS and self.error_message is None:
            raise ValueError(f"{self.operation_status} entries require an error message")

    def old_values_mapping(self) -> Mapping[str, Any] | None:
        return loads_mapping(self.old_values)

    def new_values_mapping(self) -> Mapping[str, Any] | None:
        return loads_mapping(self.new_values)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "operationType": self.operation_type,
            "tableName": self.table_name,
            "recordId": self.record_id,
            "userId": self.user_id,
            "sessionId": self.session_id,
            "requestId": self.request_id,
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "oldValues": self.old_values,
            "newValues": self.new_values,
            "sqlStatement": self.sql_statement,
            "executionTimeMs": self.execution_time_ms,
            "affectedRows": self.affected_rows,
            "errorMessage": self.error_message,
            "operationStatus": self.operation_status,
            "createdAt": self.created_at.isoformat(),
            "createdBy": self.created_by,
        }
