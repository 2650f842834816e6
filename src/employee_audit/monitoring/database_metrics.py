"""Database query accounting and live storage-engine statistics."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Protocol

from employee_audit.monitoring.metrics import MetricSet, ratio
from employee_audit.storage import SqlExecutor
from employee_audit.utils.masking import sanitize_log_value
from employee_audit.utils.time import utc_now

logger = logging.getLogger(__name__)

STATUS_UP = "UP"
STATUS_DOWN = "DOWN"

_QUERIES = "database.query.total"
_BY_OPERATION = "database.operation.total"
_ERRORS = "database.error.total"
_QUERY_TIME = "database.query.duration"
_CONNECTION_ERRORS = "database.connection.error.total"
_CONNECTION_TIME = "database.connection.duration"

_TRACKED_OPERATIONS = ("INSERT", "UPDATE", "DELETE", "SELECT")


@dataclass(frozen=True)
class DatabaseHealth:
    status: str
    version: str
    database: str
    user: str
    message: str
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "version": self.version,
            "database": self.database,
            "user": self.user,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class TableStat:
    table_name: str
    row_count: int
    live_tuples: int
    estimated_rows: int
    inserts: int
    updates: int
    deletes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "tableName": self.table_name,
            "rowCount": self.row_count,
            "liveTuples": self.live_tuples,
            "estimatedRows": self.estimated_rows,
            "inserts": self.inserts,
            "updates": self.updates,
            "deletes": self.deletes,
        }


@dataclass(frozen=True)
class TableStats:
    tables: list[TableStat]
    total_tables: int
    total_rows: int
    total_inserts: int
    total_updates: int
    total_deletes: int
    status: str = STATUS_UP

    def to_dict(self) -> dict[str, Any]:
        return {
            "tables": [table.to_dict() for table in self.tables],
            "totalTables": self.total_tables,
            "totalRows": self.total_rows,
            "totalInserts": self.total_inserts,
            "totalUpdates": self.total_updates,
            "totalDeletes": self.total_deletes,
            "status": self.status,
        }


@dataclass(frozen=True)
class ConnectionStats:
    active_connections: int
    idle_connections: int
    total_connections: int
    max_connections: int
    connection_errors: int
    average_connection_time_ms: float
    status: str = STATUS_UP

    def to_dict(self) -> dict[str, Any]:
        return {
            "activeConnections": self.active_connections,
            "idleConnections": self.idle_connections,
            "totalConnections": self.total_connections,
            "maxConnections": self.max_connections,
            "connectionErrors": self.connection_errors,
            "averageConnectionTimeMs": self.average_connection_time_ms,
            "status": self.status,
        }


@dataclass(frozen=True)
class PerformanceStats:
    total_queries: int
    total_inserts: int
    total_updates: int
    total_deletes: int
    total_selects: int
    total_errors: int
    average_query_time_ms: float
    max_query_time_ms: float
    error_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalQueries": self.total_queries,
            "totalInserts": self.total_inserts,
            "totalUpdates": self.total_updates,
            "totalDeletes": self.total_deletes,
            "totalSelects": self.total_selects,
            "totalErrors": self.total_errors,
            "averageQueryTimeMs": self.average_query_time_ms,
            "maxQueryTimeMs": self.max_query_time_ms,
            "errorRate": self.error_rate,
        }


@dataclass(frozen=True)
class DatabaseStats:
    health: DatabaseHealth
    tables: TableStats
    connections: ConnectionStats
    performance: PerformanceStats
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "health": self.health.to_dict(),
            "tableStats": self.tables.to_dict(),
            "connectionStats": self.connections.to_dict(),
            "performanceStats": self.performance.to_dict(),
            "timestamp": self.timestamp.isoformat(),
        }


def select_row_count(live_tuples: int, estimated_rows: int) -> int:
    """Prefer the live tuple count; fall back to the planner estimate when it reads zero.

    Freshly created tables report zero live tuples until statistics are
    collected. The planner estimate can be -1 for never-analyzed tables.
    """
    if live_tuples > 0:
        return live_tuples
    return max(estimated_rows, 0)


class StatisticsDialect(Protocol):
    name: str

    async def health(self, executor: SqlExecutor) -> dict[str, Any]: ...

    async def connections(self, executor: SqlExecutor) -> dict[str, Any]: ...

    async def tables(self, executor: SqlExecutor) -> list[dict[str, Any]]: ...


class PostgresStatisticsDialect:
    name = "postgresql"

    HEALTH_QUERY = (
        'SELECT version() AS version, current_database() AS database, current_user AS "user"'
    )
    CONNECTION_QUERY = """
        SELECT
            COUNT(*) FILTER (WHERE state = 'active') AS active_connections,
            COUNT(*) FILTER (WHERE state = 'idle') AS idle_connections,
            COUNT(*) AS total_connections,
            (SELECT setting::int FROM pg_settings WHERE name = 'max_connections')
                AS max_connections
        FROM pg_stat_activity
        WHERE datname = current_database()
    """
    TABLE_QUERY = """
        SELECT
            s.relname AS table_name,
            s.n_live_tup AS live_tuples,
            c.reltuples::bigint AS estimated_rows,
            s.n_tup_ins AS inserts,
            s.n_tup_upd AS updates,
            s.n_tup_del AS deletes
        FROM pg_stat_user_tables s
        JOIN pg_class c ON c.oid = s.relid
        WHERE s.schemaname = 'public'
        ORDER BY s.relname
    """

    async def health(self, executor: SqlExecutor) -> dict[str, Any]:
        return await executor.fetch_one(self.HEALTH_QUERY) or {}

    async def connections(self, executor: SqlExecutor) -> dict[str, Any]:
        return await executor.fetch_one(self.CONNECTION_QUERY) or {}

    async def tables(self, executor: SqlExecutor) -> list[dict[str, Any]]:
        return await executor.fetch_all(self.TABLE_QUERY)


class SqliteStatisticsDialect:
    """SQLite has no activity or tuple statistics views.

    Row counts come from ``COUNT(*)`` per table and change counters are
    derived from successful entries in the audit trail when it exists.
    """

    name = "sqlite"

    HEALTH_QUERY = (
        "SELECT sqlite_version() AS version, 'main' AS database, 'sqlite' AS \"user\""
    )
    TABLES_QUERY = (
        "SELECT name AS table_name FROM sqlite_master "
        "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
    )
    CHANGES_QUERY = (
        "SELECT table_name, operation_type, COUNT(*) AS total "
        "FROM database_audit_logs WHERE operation_status = 'SUCCESS' "
        "GROUP BY table_name, operation_type"
    )

    async def health(self, executor: SqlExecutor) -> dict[str, Any]:
        return await executor.fetch_one(self.HEALTH_QUERY) or {}

    async def connections(self, executor: SqlExecutor) -> dict[str, Any]:
        await executor.fetch_one("SELECT 1")
        return {
            "active_connections": 1,
            "idle_connections": 0,
            "total_connections": 1,
            "max_connections": 1,
        }

    async def tables(self, executor: SqlExecutor) -> list[dict[str, Any]]:
        names = [row["table_name"] for row in await executor.fetch_all(self.TABLES_QUERY)]
        changes: dict[tuple[str, str], int] = {}
        if "database_audit_logs" in names:
            for row in await executor.fetch_all(self.CHANGES_QUERY):
                changes[(row["table_name"], row["operation_type"])] = int(row["total"])

        rows: list[dict[str, Any]] = []
        for name in names:
            quoted = '"' + name.replace('"', '""') + '"'
            count_row = await executor.fetch_one(f"SELECT COUNT(*) AS total FROM {quoted}")
            live = int(count_row["total"]) if count_row else 0
            rows.append(
                {
                    "table_name": name,
                    "live_tuples": live,
                    "estimated_rows": live,
                    "inserts": changes.get((name, "INSERT"), 0),
                    "updates": changes.get((name, "UPDATE"), 0),
                    "deletes": changes.get((name, "DELETE"), 0),
                }
            )
        return rows


def statistics_dialect_for(name: str) -> StatisticsDialect:
    if name == PostgresStatisticsDialect.name:
        return PostgresStatisticsDialect()
    if name == SqliteStatisticsDialect.name:
        return SqliteStatisticsDialect()
    raise ValueError(f"Unsupported statistics dialect: {name}")


def _as_int(value: Any) -> int:
    if value is None:
        return 0
    return int(value)


def _table_stat(row: Mapping[str, Any]) -> TableStat:
    live = _as_int(row.get("live_tuples"))
    estimated = _as_int(row.get("estimated_rows"))
    return TableStat(
        table_name=str(row["table_name"]),
        row_count=select_row_count(live, estimated),
        live_tuples=live,
        estimated_rows=estimated,
        inserts=_as_int(row.get("inserts")),
        updates=_as_int(row.get("updates")),
        deletes=_as_int(row.get("deletes")),
    )


class DatabaseMetrics:
    """In-process query counters plus on-demand live statistics.

    Each live facet (health, connections, tables) handles its own failure
    and degrades to a DOWN or zeroed result, so one broken catalog query
    never hides the others.
    """

    def __init__(self, executor: SqlExecutor, dialect: StatisticsDialect) -> None:
        self._executor = executor
        self._dialect = dialect
        self._metrics = MetricSet("database")
        self._metrics.declare(_QUERIES)
        self._metrics.declare(_BY_OPERATION, _TRACKED_OPERATIONS)
        self._metrics.declare(_ERRORS)
        self._metrics.declare(_CONNECTION_ERRORS)

    def record_query(self, operation: str, query: str | None, duration_ms: float) -> None:
        operation = operation.upper()
        items: list[tuple[str, str | None]] = [(_QUERIES, None)]
        if operation in _TRACKED_OPERATIONS:
            items.append((_BY_OPERATION, operation))
        self._metrics.increment_many(items)
        self._metrics.record_duration(_QUERY_TIME, duration_ms)
        logger.debug(
            "Database query: operation=%s duration=%.2fms query=%s",
            operation,
            duration_ms,
            sanitize_log_value(query or ""),
        )

    def record_error(self, operation: str, error: BaseException | str) -> None:
        self._metrics.increment(_ERRORS)
        logger.warning("Database error: operation=%s error=%s", operation.upper(), error)

    def get_performance_stats(self) -> PerformanceStats:
        snap = self._metrics.snapshot()
        timer = snap.timer(_QUERY_TIME)
        total_queries = snap.count(_QUERIES)
        total_errors = snap.count(_ERRORS)
        return PerformanceStats(
            total_queries=total_queries,
            total_inserts=snap.count(_BY_OPERATION, "INSERT"),
            total_updates=snap.count(_BY_OPERATION, "UPDATE"),
            total_deletes=snap.count(_BY_OPERATION, "DELETE"),
            total_selects=snap.count(_BY_OPERATION, "SELECT"),
            total_errors=total_errors,
            average_query_time_ms=timer.mean_ms,
            max_query_time_ms=timer.max_ms,
            error_rate=ratio(total_errors, total_queries + total_errors) * 100,
        )

    async def get_database_health(self) -> DatabaseHealth:
        try:
            row = await self._dialect.health(self._executor)
            return DatabaseHealth(
                status=STATUS_UP,
                version=str(row.get("version") or "Unknown"),
                database=str(row.get("database") or "Unknown"),
                user=str(row.get("user") or "Unknown"),
                message="Connected successfully",
            )
        except Exception as exc:
            logger.error("Database health check failed: %s", exc)
            return DatabaseHealth(
                status=STATUS_DOWN,
                version="Unknown",
                database="Unknown",
                user="Unknown",
                message="Connection failed",
            )

    async def get_connection_stats(self) -> ConnectionStats:
        started = time.perf_counter()
        try:
            row = await self._dialect.connections(self._executor)
            counts = {
                key: _as_int(row.get(key))
                for key in (
                    "active_connections",
                    "idle_connections",
                    "total_connections",
                    "max_connections",
                )
            }
        except Exception as exc:
            self._metrics.increment(_CONNECTION_ERRORS)
            logger.error("Failed to read connection statistics: %s", exc)
            snap = self._metrics.snapshot()
            return ConnectionStats(
                active_connections=0,
                idle_connections=0,
                total_connections=0,
                max_connections=0,
                connection_errors=snap.count(_CONNECTION_ERRORS),
                average_connection_time_ms=snap.timer(_CONNECTION_TIME).mean_ms,
                status=STATUS_DOWN,
            )
        self._metrics.record_duration(_CONNECTION_TIME, (time.perf_counter() - started) * 1000)
        snap = self._metrics.snapshot()
        return ConnectionStats(
            **counts,
            connection_errors=snap.count(_CONNECTION_ERRORS),
            average_connection_time_ms=snap.timer(_CONNECTION_TIME).mean_ms,
        )

    async def get_table_stats(self) -> TableStats:
        try:
            rows = await self._dialect.tables(self._executor)
            tables = [_table_stat(row) for row in rows]
        except Exception as exc:
            logger.error("Failed to read table statistics: %s", exc)
            return TableStats(
                tables=[],
                total_tables=0,
                total_rows=0,
                total_inserts=0,
                total_updates=0,
                total_deletes=0,
                status=STATUS_DOWN,
            )
        return TableStats(
            tables=tables,
            total_tables=len(tables),
            total_rows=sum(table.row_count for table in tables),
            total_inserts=sum(table.inserts for table in tables),
            total_updates=sum(table.updates for table in tables),
            total_deletes=sum(table.deletes for table in tables),
        )

    async def get_database_stats(self) -> DatabaseStats:
        health, tables, connections = await asyncio.gather(
            self.get_database_health(),
            self.get_table_stats(),
            self.get_connection_stats(),
        )
        return DatabaseStats(
            health=health,
            tables=tables,
            connections=connections,
            performance=self.get_performance_stats(),
        )
