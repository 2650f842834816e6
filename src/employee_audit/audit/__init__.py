"""Database audit trail: entries, persistence, recording and interception."""

from .db import AUDIT_SCHEMA, AUDIT_TABLE, AuditLogStore
from .interceptor import OperationInterceptor
from .models import AuditLogEntry
from .recorder import AuditRecorder, AuditStatistics
from .retention import RetentionJob, RetentionScheduler

__all__ = [
    "AUDIT_SCHEMA",
    "AUDIT_TABLE",
    "AuditLogEntry",
    "AuditLogStore",
    "AuditRecorder",
    "AuditStatistics",
    "OperationInterceptor",
    "RetentionJob",
    "RetentionScheduler",
]
