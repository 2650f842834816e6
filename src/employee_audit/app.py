"""Application context assembly."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from employee_audit.audit import (
    AUDIT_SCHEMA,
    AuditLogStore,
    AuditRecorder,
    OperationInterceptor,
    RetentionJob,
    RetentionScheduler,
)
from employee_audit.cache import CacheManager
from employee_audit.config import Settings, load_settings
from employee_audit.employees import EMPLOYEE_SCHEMA, EmployeeRepository, EmployeeService
from employee_audit.events import StructuredEventLogger
from employee_audit.monitoring import (
    CacheMetrics,
    DatabaseMetrics,
    LogMetrics,
    TransactionMetrics,
    statistics_dialect_for,
)
from employee_audit.monitoring.exposition import MetricsExporter
from employee_audit.storage import SqliteExecutor


@dataclass
class AppContext:
    """Application-wide dependency container.

    Holds the storage executor, the audit pipeline, the four aggregators and
    the employee service. Built once per process (or per test).
    """

    settings: Settings
    executor: SqliteExecutor
    store: AuditLogStore
    events: StructuredEventLogger
    recorder: AuditRecorder
    interceptor: OperationInterceptor
    log_metrics: LogMetrics
    transaction_metrics: TransactionMetrics
    cache_manager: CacheManager
    cache_metrics: CacheMetrics
    database_metrics: DatabaseMetrics
    exporter: MetricsExporter
    employees: EmployeeService
    retention_job: RetentionJob
    retention_scheduler: RetentionScheduler

    async def close(self) -> None:
        await self.retention_scheduler.stop()
        await self.interceptor.background.drain(timeout=5.0)
        await self.executor.close()


def build_app_context(settings: Settings) -> AppContext:
    executor = SqliteExecutor(settings.storage.sqlite_path, wal=settings.storage.sqlite_wal)
    executor.init_schema(AUDIT_SCHEMA)
    executor.init_schema(EMPLOYEE_SCHEMA)

    log_metrics = LogMetrics()
    transaction_metrics = TransactionMetrics()
    cache_manager = CacheManager(settings.cache.names, settings.cache.max_entries)
    cache_metrics = CacheMetrics(cache_manager)
    database_metrics = DatabaseMetrics(
        executor, statistics_dialect_for(settings.storage.stats_dialect)
    )

    events = StructuredEventLogger(
        log_metrics, slow_operation_ms=settings.monitoring.slow_operation_ms
    )
    store = AuditLogStore(executor)
    recorder = AuditRecorder(store, events)
    interceptor = OperationInterceptor(
        recorder, database_metrics=database_metrics, enabled=settings.audit.enabled
    )
    repository = EmployeeRepository(executor, interceptor)
    employees = EmployeeService(
        repository, cache_manager, cache_metrics, transaction_metrics, events
    )

    retention_job = RetentionJob(recorder, settings.audit.retention_days)
    retention_scheduler = RetentionScheduler(
        retention_job, hour=settings.audit.cleanup_hour, minute=settings.audit.cleanup_minute
    )

    return AppContext(
        settings=settings,
        executor=executor,
        store=store,
        events=events,
        recorder=recorder,
        interceptor=interceptor,
        log_metrics=log_metrics,
        transaction_metrics=transaction_metrics,
        cache_manager=cache_manager,
        cache_metrics=cache_metrics,
        database_metrics=database_metrics,
        exporter=MetricsExporter(log_metrics, transaction_metrics, cache_metrics, database_metrics),
        employees=employees,
        retention_job=retention_job,
        retention_scheduler=retention_scheduler,
    )


@lru_cache(maxsize=1)
def get_app_context() -> AppContext:
    """Get or create the process-wide application context."""
    return build_app_context(load_settings())
