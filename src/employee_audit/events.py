"""Structured audit, security and performance events.

Each ``log_*`` method merges its payload with the current request context,
renders it as JSON and writes it to a named channel logger. Nothing here
raises into the caller: a payload that cannot be built or serialized is
reported on the application logger and dropped.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Mapping

from employee_audit.context import ANONYMOUS_USER, get_request_context_optional
from employee_audit.logging_utils import (
    AUDIT_CHANNEL,
    PERFORMANCE_CHANNEL,
    SECURITY_CHANNEL,
    get_channel_logger,
)
from employee_audit.monitoring.log_metrics import LogMetrics
from employee_audit.utils.masking import redact_sensitive_fields
from employee_audit.utils.serialization import json_default
from employee_audit.utils.time import utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_SLOW_OPERATION_MS = 1000

PayloadBuilder = Callable[[], tuple[int, dict[str, Any]]]


def _details(details: Mapping[str, Any] | None) -> dict[str, Any] | None:
    return dict(details) if details else None


class StructuredEventLogger:
    def __init__(
        self,
        log_metrics: LogMetrics | None = None,
        slow_operation_ms: int = DEFAULT_SLOW_OPERATION_MS,
    ) -> None:
        self._log_metrics = log_metrics
        self._slow_operation_ms = slow_operation_ms
        self._audit = get_channel_logger(AUDIT_CHANNEL)
        self._security = get_channel_logger(SECURITY_CHANNEL)
        self._performance = get_channel_logger(PERFORMANCE_CHANNEL)

    def _base(self, event_type: str, user_id: str | None = None) -> dict[str, Any]:
        ctx = get_request_context_optional()
        payload: dict[str, Any] = {"timestamp": utc_now_iso(), "eventType": event_type}
        if ctx is not None:
            payload.update(ctx.as_log_fields())
        else:
            payload.update(
                {
                    "requestId": None,
                    "sessionId": None,
                    "ipAddress": None,
                    "userAgent": None,
                    "userId": ANONYMOUS_USER,
                }
            )
        if user_id is not None:
            payload["userId"] = user_id
        return payload

    def _emit(self, channel: logging.Logger, label: str, build: PayloadBuilder) -> None:
        """Build, render and write one event; every failure stops at a warning."""
        try:
            level, payload = build()
        except Exception as exc:
            logger.warning("%s payload could not be built: %s", label, exc)
            return
        try:
            rendered = json.dumps(
                redact_sensitive_fields(payload),
                default=json_default,
                ensure_ascii=False,
                separators=(",", ":"),
            )
        except (TypeError, ValueError) as exc:
            logger.warning("%s serialization failed: %s", label, exc)
            return
        try:
            channel.log(level, "%s: %s", label, rendered)
        except Exception:
            logger.debug("Failed to write %s event", label, exc_info=True)

    def _count(self, record: Callable[[LogMetrics], None]) -> None:
        if self._log_metrics is None:
            return
        try:
            record(self._log_metrics)
        except Exception:
            logger.debug("Failed to update log metrics", exc_info=True)

    def _is_slow(self, duration_ms: float) -> bool:
        return duration_ms > self._slow_operation_ms

    def log_user_operation(
        self,
        operation: str,
        resource: str,
        resource_id: str | None = None,
        details: Mapping[str, Any] | None = None,
        user_id: str | None = None,
    ) -> None:
        def build() -> tuple[int, dict[str, Any]]:
            payload = self._base("USER_OPERATION", user_id)
            payload.update(
                {
                    "operation": operation,
                    "resource": resource,
                    "resourceId": resource_id,
                    "details": _details(details),
                }
            )
            return logging.INFO, payload

        self._emit(self._audit, "User operation audit", build)
        self._count(lambda metrics: metrics.record_audit_log(operation, resource))

    def log_data_access(
        self,
        operation: str,
        table: str,
        record_id: str | None = None,
        old_values: Mapping[str, Any] | None = None,
        new_values: Mapping[str, Any] | None = None,
        user_id: str | None = None,
    ) -> None:
        def build() -> tuple[int, dict[str, Any]]:
            payload = self._base("DATA_ACCESS", user_id)
            payload.update(
                {
                    "operation": operation,
                    "table": table,
                    "recordId": record_id,
                    "oldValues": _details(old_values),
                    "newValues": _details(new_values),
                }
            )
            return logging.INFO, payload

        self._emit(self._audit, "Data access audit", build)
        self._count(lambda metrics: metrics.record_audit_log(operation, table))

    def log_security_event(
        self,
        event_type: str,
        severity: str,
        description: str,
        details: Mapping[str, Any] | None = None,
        user_id: str | None = None,
    ) -> None:
        def build() -> tuple[int, dict[str, Any]]:
            payload = self._base("SECURITY", user_id)
            payload.update(
                {
                    "securityEventType": event_type,
                    "severity": severity,
                    "description": description,
                    "details": _details(details),
                }
            )
            return logging.WARNING, payload

        self._emit(self._security, "Security event", build)
        self._count(lambda metrics: metrics.record_security_log(event_type, severity))

    def log_performance(
        self,
        operation: str,
        duration_ms: float,
        status: str = "SUCCESS",
        details: Mapping[str, Any] | None = None,
    ) -> None:
        def build() -> tuple[int, dict[str, Any]]:
            slow = self._is_slow(duration_ms)
            payload = self._base("PERFORMANCE")
            payload.update(
                {
                    "operation": operation,
                    "durationMs": duration_ms,
                    "status": status,
                    "slow": slow,
                    "details": _details(details),
                }
            )
            return (logging.WARNING if slow else logging.INFO), payload

        self._emit(self._performance, "Performance monitoring", build)
        self._count(lambda metrics: metrics.record_performance_log(operation, duration_ms))

    def log_api_call(
        self,
        method: str,
        uri: str,
        status_code: int,
        duration_ms: float,
        request_size: int | None = None,
        response_size: int | None = None,
        user_id: str | None = None,
    ) -> None:
        def build() -> tuple[int, dict[str, Any]]:
            payload = self._base("API_CALL", user_id)
            payload.update(
                {
                    "method": method,
                    "uri": uri,
                    "statusCode": status_code,
                    "durationMs": duration_ms,
                    "requestSize": request_size,
                    "responseSize": response_size,
                }
            )
            if status_code >= 400:
                level = logging.ERROR
            elif self._is_slow(duration_ms):
                level = logging.WARNING
            else:
                level = logging.INFO
            return level, payload

        self._emit(self._audit, "API call audit", build)
        self._count(lambda metrics: metrics.record_request_log(method, uri, status_code))

    def log_business_operation(
        self,
        operation: str,
        entity_type: str,
        entity_id: str | None,
        result: str = "SUCCESS",
        details: Mapping[str, Any] | None = None,
        user_id: str | None = None,
    ) -> None:
        def build() -> tuple[int, dict[str, Any]]:
            payload = self._base("BUSINESS_OPERATION", user_id)
            payload.update(
                {
                    "businessOperation": operation,
                    "entityType": entity_type,
                    "entityId": entity_id,
                    "result": result,
                    "details": _details(details),
                }
            )
            return logging.INFO, payload

        self._emit(self._audit, "Business operation audit", build)
        self._count(lambda metrics: metrics.record_audit_log(operation, entity_type))

    def log_system_event(
        self,
        event_type: str,
        component: str,
        description: str,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        def build() -> tuple[int, dict[str, Any]]:
            payload = self._base("SYSTEM")
            payload.update(
                {
                    "systemEventType": event_type,
                    "component": component,
                    "description": description,
                    "details": _details(details),
                }
            )
            return logging.INFO, payload

        self._emit(self._audit, "System event", build)
        self._count(lambda metrics: metrics.record_application_log("INFO", component))

    def log_error(
        self,
        error_type: str,
        component: str,
        error_message: str,
        exc: BaseException | None = None,
        details: Mapping[str, Any] | None = None,
        user_id: str | None = None,
    ) -> None:
        def build() -> tuple[int, dict[str, Any]]:
            payload = self._base("ERROR", user_id)
            payload.update(
                {
                    "errorType": error_type,
                    "component": component,
                    "errorMessage": error_message,
                    "exceptionClass": type(exc).__name__ if exc is not None else None,
                    "details": _details(details),
                }
            )
            return logging.ERROR, payload

        self._emit(self._audit, "Error audit", build)
        self._count(lambda metrics: metrics.record_error_log(error_type, component))
