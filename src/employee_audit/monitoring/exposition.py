"""Prometheus text exposition of the in-process aggregators."""

from __future__ import annotations

import logging

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Gauge, generate_latest

from employee_audit.monitoring.cache_metrics import CacheMetrics
from employee_audit.monitoring.database_metrics import DatabaseMetrics
from employee_audit.monitoring.log_metrics import LogMetrics
from employee_audit.monitoring.transaction_metrics import TransactionMetrics

logger = logging.getLogger(__name__)

PROMETHEUS_CONTENT_TYPE = CONTENT_TYPE_LATEST


class MetricsExporter:
    """Mirrors aggregator snapshots into a private registry on each scrape.

    Gauges rather than counters: the aggregators can be reset, and the
    exported values must follow them down.
    """

    def __init__(
        self,
        log_metrics: LogMetrics,
        transaction_metrics: TransactionMetrics,
        cache_metrics: CacheMetrics,
        database_metrics: DatabaseMetrics,
    ) -> None:
        self._log_metrics = log_metrics
        self._transaction_metrics = transaction_metrics
        self._cache_metrics = cache_metrics
        self._database_metrics = database_metrics
        self.registry = CollectorRegistry()
        self._setup_metrics()

    def _setup_metrics(self) -> None:
        self.log_events = Gauge(
            "employee_audit_log_events",
            "Structured log events emitted, by category",
            ["category"],
            registry=self.registry,
        )
        self.log_errors = Gauge(
            "employee_audit_log_errors",
            "Error log events, by error type",
            ["error_type"],
            registry=self.registry,
        )
        self.log_error_rate = Gauge(
            "employee_audit_log_error_rate",
            "Ratio of error events to all events",
            registry=self.registry,
        )
        self.transactions = Gauge(
            "employee_audit_transactions",
            "Business transactions, by outcome",
            ["outcome"],
            registry=self.registry,
        )
        self.transaction_duration = Gauge(
            "employee_audit_transaction_duration_ms_avg",
            "Mean business transaction duration in milliseconds",
            registry=self.registry,
        )
        self.cache_operations = Gauge(
            "employee_audit_cache_operations",
            "Cache operations, by cache and kind",
            ["cache", "kind"],
            registry=self.registry,
        )
        self.cache_hit_rate = Gauge(
            "employee_audit_cache_hit_rate",
            "Cache hit rate, by cache",
            ["cache"],
            registry=self.registry,
        )
        self.database_queries = Gauge(
            "employee_audit_database_queries",
            "Database statements executed, by operation",
            ["operation"],
            registry=self.registry,
        )
        self.database_errors = Gauge(
            "employee_audit_database_errors",
            "Failed database statements",
            registry=self.registry,
        )
        self.database_query_time = Gauge(
            "employee_audit_database_query_ms",
            "Database statement duration in milliseconds",
            ["stat"],
            registry=self.registry,
        )

    def update_metrics(self) -> None:
        log_stats = self._log_metrics.get_log_stats()
        self.log_events.clear()
        for category, count in log_stats.log_counts.items():
            self.log_events.labels(category=category).set(count)
        self.log_errors.clear()
        for error_type, count in log_stats.error_counts.items():
            self.log_errors.labels(error_type=error_type).set(count)
        self.log_error_rate.set(log_stats.error_rate)

        tx_stats = self._transaction_metrics.get_transaction_stats()
        self.transactions.labels(outcome="started").set(tx_stats.starts)
        self.transactions.labels(outcome="committed").set(tx_stats.commits)
        self.transactions.labels(outcome="rolled_back").set(tx_stats.rollbacks)
        self.transactions.labels(outcome="errored").set(tx_stats.errors)
        self.transaction_duration.set(tx_stats.average_duration_ms)

        cache_stats = self._cache_metrics.get_cache_stats()
        self.cache_operations.clear()
        self.cache_hit_rate.clear()
        for name, info in cache_stats.caches.items():
            self.cache_operations.labels(cache=name, kind="hit").set(info.hits)
            self.cache_operations.labels(cache=name, kind="miss").set(info.misses)
            self.cache_operations.labels(cache=name, kind="put").set(info.puts)
            self.cache_operations.labels(cache=name, kind="evict").set(info.evicts)
            self.cache_hit_rate.labels(cache=name).set(info.hit_rate)

        perf = self._database_metrics.get_performance_stats()
        self.database_queries.labels(operation="all").set(perf.total_queries)
        self.database_queries.labels(operation="insert").set(perf.total_inserts)
        self.database_queries.labels(operation="update").set(perf.total_updates)
        self.database_queries.labels(operation="delete").set(perf.total_deletes)
        self.database_queries.labels(operation="select").set(perf.total_selects)
        self.database_errors.set(perf.total_errors)
        self.database_query_time.labels(stat="avg").set(perf.average_query_time_ms)
        self.database_query_time.labels(stat="max").set(perf.max_query_time_ms)

    def render(self) -> bytes:
        self.update_metrics()
        return generate_latest(self.registry)
