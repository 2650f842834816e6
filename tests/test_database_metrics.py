from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from employee_audit.monitoring.database_metrics import (
    STATUS_DOWN,
    STATUS_UP,
    DatabaseMetrics,
    PostgresStatisticsDialect,
    SqliteStatisticsDialect,
    select_row_count,
    statistics_dialect_for,
)


class BrokenDialect:
    name = "broken"

    async def health(self, executor):
        raise RuntimeError("catalog unavailable")

    async def connections(self, executor):
        raise RuntimeError("catalog unavailable")

    async def tables(self, executor):
        raise RuntimeError("catalog unavailable")


@pytest.mark.parametrize(
    ("live", "estimated", "expected"),
    [(5, 100, 5), (0, 42, 42), (0, -1, 0), (0, 0, 0)],
)
def test_select_row_count(live: int, estimated: int, expected: int) -> None:
    assert select_row_count(live, estimated) == expected


def test_statistics_dialect_lookup() -> None:
    assert isinstance(statistics_dialect_for("sqlite"), SqliteStatisticsDialect)
    assert isinstance(statistics_dialect_for("postgresql"), PostgresStatisticsDialect)
    with pytest.raises(ValueError):
        statistics_dialect_for("oracle")


def test_performance_stats_and_error_rate() -> None:
    metrics = DatabaseMetrics(AsyncMock(), SqliteStatisticsDialect())
    metrics.record_query("select", "SELECT 1", 4.0)
    metrics.record_query("INSERT", "INSERT INTO employees ...", 8.0)
    metrics.record_query("PRAGMA", "PRAGMA user_version", 3.0)
    metrics.record_error("UPDATE", "constraint failed")

    perf = metrics.get_performance_stats()
    assert perf.total_queries == 3
    assert perf.total_selects == 1
    assert perf.total_inserts == 1
    assert perf.total_updates == 0
    assert perf.total_errors == 1
    assert perf.max_query_time_ms == 8.0
    assert perf.average_query_time_ms == pytest.approx(5.0)
    assert perf.error_rate == pytest.approx(25.0)


def test_empty_performance_stats() -> None:
    perf = DatabaseMetrics(AsyncMock(), SqliteStatisticsDialect()).get_performance_stats()
    assert perf.total_queries == 0
    assert perf.error_rate == 0.0
    assert perf.average_query_time_ms == 0.0


@pytest.mark.asyncio
async def test_sqlite_live_statistics(executor, recorder) -> None:
    await executor.execute(
        "INSERT INTO employees (employee_number, name, created_at, updated_at) VALUES (?, ?, ?, ?)",
        ("EMP001", "Alice", "2024-01-01T00:00:00", "2024-01-01T00:00:00"),
    )
    await recorder.log_insert_operation("employees", "new_record", {"name": "Alice"}, "INSERT ...", 1)
    await recorder.log_update_operation("employees", "1", None, {"name": "A"}, "UPDATE ...", 1)
    metrics = DatabaseMetrics(executor, SqliteStatisticsDialect())

    health = await metrics.get_database_health()
    assert health.status == STATUS_UP
    assert health.version != "Unknown"
    assert health.message == "Connected successfully"

    connections = await metrics.get_connection_stats()
    assert connections.status == STATUS_UP
    assert connections.total_connections == 1
    assert connections.connection_errors == 0

    tables = await metrics.get_table_stats()
    by_name = {table.table_name: table for table in tables.tables}
    assert set(by_name) == {"database_audit_logs", "employees"}
    assert by_name["employees"].row_count == 1
    assert by_name["employees"].inserts == 1
    assert by_name["employees"].updates == 1
    assert by_name["database_audit_logs"].row_count == 2
    assert tables.total_tables == 2
    assert tables.total_rows == 3


@pytest.mark.asyncio
async def test_failing_catalog_degrades_each_facet() -> None:
    metrics = DatabaseMetrics(AsyncMock(), BrokenDialect())
    metrics.record_query("SELECT", "SELECT 1", 2.0)

    stats = await metrics.get_database_stats()

    assert stats.health.status == STATUS_DOWN
    assert stats.health.version == "Unknown"
    assert stats.health.message == "Connection failed"
    assert stats.connections.status == STATUS_DOWN
    assert stats.connections.total_connections == 0
    assert stats.connections.connection_errors == 1
    assert stats.tables.status == STATUS_DOWN
    assert stats.tables.tables == []
    assert stats.performance.total_queries == 1

    payload = stats.to_dict()
    assert set(payload) == {"health", "tableStats", "connectionStats", "performanceStats", "timestamp"}


class MalformedCatalogDialect:
    name = "malformed"

    async def health(self, executor):
        return {"version": "16.2", "database": "employees", "user": "app"}

    async def connections(self, executor):
        return {"active_connections": "many"}

    async def tables(self, executor):
        return [{"table_name": "employees", "live_tuples": "n/a"}]


@pytest.mark.asyncio
async def test_malformed_catalog_rows_degrade_only_their_facet() -> None:
    metrics = DatabaseMetrics(AsyncMock(), MalformedCatalogDialect())

    stats = await metrics.get_database_stats()

    assert stats.health.status == STATUS_UP
    assert stats.health.version == "16.2"
    assert stats.tables.status == STATUS_DOWN
    assert stats.tables.total_tables == 0
    assert stats.connections.status == STATUS_DOWN
    assert stats.connections.connection_errors == 1
