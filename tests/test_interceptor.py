from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from employee_audit.audit import AuditRecorder, OperationInterceptor
from employee_audit.context import RequestContext, request_scope
from employee_audit.storage import ExecuteResult


@pytest.mark.asyncio
async def test_success_returns_result_and_records_entry(interceptor, store) -> None:
    sql = "INSERT INTO employees (employee_number, name) VALUES (?, ?)"
    result = ExecuteResult(rowcount=1, lastrowid=11)

    with request_scope(RequestContext(request_id="req-ok", user_id="alice")):
        returned = await interceptor.intercept_insert(
            sql, ("EMP001", "Alice"), AsyncMock(return_value=result)
        )
    await interceptor.background.drain()

    assert returned is result
    [entry] = await store.find_recent(10)
    assert entry.operation_type == "INSERT"
    assert entry.operation_status == "SUCCESS"
    assert entry.table_name == "employees"
    assert entry.record_id == "new_record"
    assert entry.affected_rows == 1
    assert entry.sql_statement == sql
    assert entry.request_id == "req-ok"
    assert entry.user_id == "alice"
    assert entry.new_values_mapping() == {"param1": "EMP001", "param2": "Alice"}


@pytest.mark.asyncio
async def test_failure_reraises_original_error_and_records_entry(interceptor, store) -> None:
    error = RuntimeError("UNIQUE constraint failed: employees.employee_number")

    with pytest.raises(RuntimeError) as raised:
        await interceptor.intercept_update(
            "UPDATE employees SET name = ? WHERE employee_id = ?",
            ("x", 1),
            AsyncMock(side_effect=error),
        )
    await interceptor.background.drain()

    assert raised.value is error
    [entry] = await store.find_recent(10)
    assert entry.operation_status == "FAILURE"
    assert entry.operation_type == "UPDATE"
    assert entry.record_id == "extracted_from_where"
    assert entry.error_message == str(error)
    assert entry.affected_rows == 0


@pytest.mark.asyncio
async def test_audit_persistence_failure_never_reaches_caller(events, log_metrics) -> None:
    broken_store = AsyncMock()
    broken_store.create.side_effect = RuntimeError("audit store down")
    interceptor = OperationInterceptor(AuditRecorder(broken_store, events))

    rows = await interceptor.intercept_select(
        "SELECT * FROM employees", (), AsyncMock(return_value=[{"employee_id": 1}])
    )
    await interceptor.background.drain()

    assert rows == [{"employee_id": 1}]
    assert log_metrics.get_log_stats().total_errors == 1


@pytest.mark.asyncio
async def test_audit_write_is_detached_from_caller() -> None:
    release = asyncio.Event()
    recorded = asyncio.Event()

    async def slow_log(*args, **kwargs) -> None:
        await release.wait()
        recorded.set()

    recorder = MagicMock()
    recorder.log_successful_operation = slow_log
    interceptor = OperationInterceptor(recorder)

    result = await asyncio.wait_for(
        interceptor.intercept_select("SELECT * FROM employees", (), AsyncMock(return_value=[])),
        timeout=1,
    )

    assert result == []
    assert not recorded.is_set()
    assert interceptor.background.pending == 1

    release.set()
    await interceptor.background.drain(timeout=1)
    assert recorded.is_set()
    assert interceptor.background.pending == 0


@pytest.mark.asyncio
async def test_cancelled_operation_produces_no_entry(interceptor, store) -> None:
    started = asyncio.Event()

    async def never_finishes() -> None:
        started.set()
        await asyncio.Event().wait()

    task = asyncio.create_task(
        interceptor.intercept_delete("DELETE FROM employees WHERE employee_id = ?", (1,), never_finishes)
    )
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await interceptor.background.drain()

    assert await store.find_recent(10) == []


@pytest.mark.asyncio
async def test_database_metrics_are_updated(recorder) -> None:
    database_metrics = MagicMock()
    interceptor = OperationInterceptor(recorder, database_metrics=database_metrics)

    await interceptor.intercept_select("SELECT * FROM employees", (), AsyncMock(return_value=[]))
    with pytest.raises(ValueError):
        await interceptor.intercept_delete(
            "DELETE FROM employees", (), AsyncMock(side_effect=ValueError("bad"))
        )
    await interceptor.background.drain()

    database_metrics.record_query.assert_called_once()
    assert database_metrics.record_query.call_args.args[0] == "SELECT"
    database_metrics.record_error.assert_called_once()
    assert database_metrics.record_error.call_args.args[0] == "DELETE"


@pytest.mark.asyncio
async def test_disabled_interceptor_skips_audit(recorder, store) -> None:
    interceptor = OperationInterceptor(recorder, enabled=False)

    await interceptor.intercept_select("SELECT * FROM employees", (), AsyncMock(return_value=[]))
    await interceptor.background.drain()

    assert await store.find_recent(10) == []


@pytest.mark.asyncio
async def test_each_call_records_exactly_one_entry(interceptor, store) -> None:
    calls = [
        interceptor.intercept_select(
            f"SELECT * FROM employees WHERE name = '{index}'", (), AsyncMock(return_value=[])
        )
        for index in range(10)
    ]
    await asyncio.gather(*calls)
    await interceptor.background.drain()

    entries = await store.find_by_table_name("employees")
    assert len(entries) == 10
    assert {entry.operation_status for entry in entries} == {"SUCCESS"}
