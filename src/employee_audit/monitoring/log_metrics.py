"""Counters for emitted log events and the error-rate health verdict."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from employee_audit.monitoring.metrics import MetricSet, ratio
from employee_audit.utils.time import utc_now

logger = logging.getLogger(__name__)

CATEGORY_AUDIT = "AUDIT"
CATEGORY_SECURITY = "SECURITY"
CATEGORY_PERFORMANCE = "PERFORMANCE"
CATEGORY_ERROR = "ERROR"
CATEGORY_REQUEST = "REQUEST"
CATEGORY_APPLICATION = "APPLICATION"

LOG_CATEGORIES = (
    CATEGORY_AUDIT,
    CATEGORY_SECURITY,
    CATEGORY_PERFORMANCE,
    CATEGORY_ERROR,
    CATEGORY_REQUEST,
    CATEGORY_APPLICATION,
)

VALIDATION_ERROR = "VALIDATION_ERROR"
BUSINESS_ERROR = "BUSINESS_ERROR"
SYSTEM_ERROR = "SYSTEM_ERROR"
SECURITY_ERROR = "SECURITY_ERROR"

ERROR_TYPES = (VALIDATION_ERROR, BUSINESS_ERROR, SYSTEM_ERROR, SECURITY_ERROR)

HEALTHY = "HEALTHY"
WARNING = "WARNING"
CRITICAL = "CRITICAL"

_WARNING_THRESHOLD = 0.01
_CRITICAL_THRESHOLD = 0.05

_LOGS = "logs"
_ERRORS_BY_TYPE = "logs.errors"
_TOTAL_LOGS = "logs.total"
_TOTAL_ERRORS = "logs.errors.total"
_PROCESSING = "logs.processing.duration"


def classify_error_rate(error_rate: float) -> str:
    if error_rate < _WARNING_THRESHOLD:
        return HEALTHY
    if error_rate < _CRITICAL_THRESHOLD:
        return WARNING
    return CRITICAL


@dataclass(frozen=True)
class LogStats:
    total_logs: int
    total_errors: int
    log_counts: dict[str, int]
    error_counts: dict[str, int]
    average_processing_time_ms: float
    error_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalLogs": self.total_logs,
            "totalErrors": self.total_errors,
            "logCounts": self.log_counts,
            "errorCounts": self.error_counts,
            "averageProcessingTimeMs": self.average_processing_time_ms,
            "errorRate": self.error_rate,
        }


@dataclass(frozen=True)
class LogHealthStatus:
    status: str
    error_rate: float
    total_logs: int
    total_errors: int
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "errorRate": self.error_rate,
            "totalLogs": self.total_logs,
            "totalErrors": self.total_errors,
            "timestamp": self.timestamp.isoformat(),
        }


class LogMetrics:
    """Per-category log counters plus per-error-type sub-counters."""

    def __init__(self) -> None:
        self._metrics = MetricSet("logs")
        self._metrics.declare(_LOGS, LOG_CATEGORIES)
        self._metrics.declare(_ERRORS_BY_TYPE, ERROR_TYPES)
        self._metrics.declare(_TOTAL_LOGS)
        self._metrics.declare(_TOTAL_ERRORS)

    def _record(self, category: str, *extra: tuple[str, str | None]) -> None:
        self._metrics.increment_many(((_LOGS, category), (_TOTAL_LOGS, None), *extra))

    def record_audit_log(self, operation: str, resource: str | None = None) -> None:
        self._record(CATEGORY_AUDIT)
        logger.debug("Audit log recorded: operation=%s resource=%s", operation, resource)

    def record_security_log(self, event_type: str, severity: str | None = None) -> None:
        self._record(CATEGORY_SECURITY)
        logger.debug("Security log recorded: event=%s severity=%s", event_type, severity)

    def record_performance_log(self, operation: str, duration_ms: float) -> None:
        self._record(CATEGORY_PERFORMANCE)
        self._metrics.record_duration(_PROCESSING, duration_ms)
        logger.debug("Performance log recorded: operation=%s duration=%sms", operation, duration_ms)

    def record_error_log(self, error_type: str, component: str | None = None) -> None:
        extra: list[tuple[str, str | None]] = [(_TOTAL_ERRORS, None)]
        if error_type in ERROR_TYPES:
            extra.append((_ERRORS_BY_TYPE, error_type))
        self._record(CATEGORY_ERROR, *extra)
        logger.debug("Error log recorded: type=%s component=%s", error_type, component)

    def record_request_log(self, method: str, uri: str, status: int) -> None:
        self._record(CATEGORY_REQUEST)

    def record_application_log(self, level: str, component: str | None = None) -> None:
        self._record(CATEGORY_APPLICATION)

    def get_log_stats(self) -> LogStats:
        snap = self._metrics.snapshot()
        total_logs = snap.count(_TOTAL_LOGS)
        total_errors = snap.count(_TOTAL_ERRORS)
        return LogStats(
            total_logs=total_logs,
            total_errors=total_errors,
            log_counts=snap.counts_by_tag(_LOGS),
            error_counts=snap.counts_by_tag(_ERRORS_BY_TYPE),
            average_processing_time_ms=snap.timer(_PROCESSING).mean_ms,
            error_rate=ratio(total_errors, total_logs),
        )

    def get_log_health_status(self) -> LogHealthStatus:
        stats = self.get_log_stats()
        return LogHealthStatus(
            status=classify_error_rate(stats.error_rate),
            error_rate=stats.error_rate,
            total_logs=stats.total_logs,
            total_errors=stats.total_errors,
            timestamp=utc_now(),
        )

    def reset_log_stats(self) -> None:
        self._metrics.reset()
        logger.info("Log statistics reset")
