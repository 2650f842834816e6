from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from employee_audit.audit.models import AuditLogEntry
from employee_audit.storage import SqliteExecutor


def _entry(
    *,
    operation_type: str = "INSERT",
    table_name: str = "employees",
    record_id: str = "new_record",
    user_id: str = "alice",
    status: str = "SUCCESS",
    error_message: str | None = None,
    created_at: datetime | None = None,
    session_id: str | None = "sess-1",
    request_id: str | None = "req-1",
) -> AuditLogEntry:
    return AuditLogEntry(
        operation_type=operation_type,
        table_name=table_name,
        record_id=record_id,
        user_id=user_id,
        session_id=session_id,
        request_id=request_id,
        ip_address="127.0.0.1",
        user_agent="pytest",
        old_values=None,
        new_values='{"name": "Alice"}',
        sql_statement="INSERT INTO employees (name) VALUES (?)",
        execution_time_ms=3,
        affected_rows=1,
        error_message=error_message,
        operation_status=status,
        created_at=created_at or datetime.now(timezone.utc),
        created_by=user_id,
    )


def test_entry_status_invariants() -> None:
    with pytest.raises(ValueError):
        _entry(status="SUCCESS", error_message="boom")
    with pytest.raises(ValueError):
        _entry(status="FAILURE", error_message=None)
    with pytest.raises(ValueError):
        _entry(status="ROLLBACK", error_message=None)


@pytest.mark.asyncio
async def test_create_assigns_id_and_round_trips(store) -> None:
    saved = await store.create(_entry())
    assert saved.id is not None

    loaded = await store.get(saved.id)
    assert loaded == saved
    assert loaded.new_values_mapping() == {"name": "Alice"}
    assert loaded.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_finders_return_newest_first(store) -> None:
    now = datetime.now(timezone.utc)
    oldest = await store.create(_entry(created_at=now - timedelta(minutes=2)))
    middle = await store.create(_entry(created_at=now - timedelta(minutes=1)))
    newest = await store.create(_entry(created_at=now))

    found = await store.find_by_table_name("employees")
    assert [entry.id for entry in found] == [newest.id, middle.id, oldest.id]


@pytest.mark.asyncio
async def test_same_timestamp_ties_break_by_id(store) -> None:
    moment = datetime.now(timezone.utc)
    first = await store.create(_entry(created_at=moment))
    second = await store.create(_entry(created_at=moment))

    found = await store.find_recent(10)
    assert [entry.id for entry in found] == [second.id, first.id]


@pytest.mark.asyncio
async def test_predicate_finders(store) -> None:
    now = datetime.now(timezone.utc)
    await store.create(_entry(operation_type="INSERT", user_id="alice"))
    await store.create(
        _entry(
            operation_type="UPDATE",
            record_id="extracted_from_where",
            user_id="bob",
            session_id="sess-2",
            request_id="req-2",
        )
    )
    await store.create(
        _entry(
            operation_type="DELETE",
            table_name="departments",
            user_id="bob",
            status="FAILURE",
            error_message="constraint failed",
        )
    )

    assert len(await store.find_by_operation_type("UPDATE")) == 1
    assert len(await store.find_by_user_id("bob")) == 2
    assert len(await store.find_by_session_id("sess-2")) == 1
    assert len(await store.find_by_request_id("req-1")) == 2
    assert len(await store.find_by_record_id("extracted_from_where")) == 1
    assert len(await store.find_by_operation_status("FAILURE")) == 1
    assert len(await store.find_by_table_name_and_record_id("employees", "new_record")) == 1
    assert len(await store.find_by_operation_type_and_table_name("DELETE", "departments")) == 1
    assert len(
        await store.find_by_user_id_and_created_at_between(
            "bob", now - timedelta(minutes=1), now + timedelta(minutes=1)
        )
    ) == 2
    assert len(
        await store.find_by_created_at_between(now - timedelta(minutes=1), now + timedelta(minutes=1))
    ) == 3

    errors = await store.find_errors_between(now - timedelta(minutes=1), now + timedelta(minutes=1))
    assert [entry.error_message for entry in errors] == ["constraint failed"]
    assert len(await store.find_errors_by_user_id("bob")) == 1
    assert await store.find_errors_by_user_id("alice") == []


@pytest.mark.asyncio
async def test_counts(store) -> None:
    now = datetime.now(timezone.utc)
    await store.create(_entry(created_at=now - timedelta(days=10)))
    await store.create(_entry(operation_type="SELECT"))
    await store.create(_entry(status="ROLLBACK", error_message="Transaction rolled back"))

    assert await store.count_by_created_at_between(now - timedelta(days=1), now + timedelta(seconds=5)) == 2
    assert await store.count_by_operation_type("INSERT") == 2
    assert await store.count_by_operation_type("SELECT") == 1
    assert await store.count_by_operation_status("ROLLBACK") == 1


@pytest.mark.asyncio
async def test_delete_created_before(store) -> None:
    now = datetime.now(timezone.utc)
    await store.create(_entry(created_at=now - timedelta(days=100)))
    await store.create(_entry(created_at=now - timedelta(days=91)))
    kept = await store.create(_entry(created_at=now - timedelta(days=1)))

    assert await store.delete_created_before(now - timedelta(days=90)) == 2
    assert await store.delete_created_before(now - timedelta(days=90)) == 0
    assert [entry.id for entry in await store.find_recent(10)] == [kept.id]


@pytest.mark.asyncio
async def test_executor_basics(tmp_path) -> None:
    executor = SqliteExecutor(str(tmp_path / "nested" / "db.sqlite"))
    executor.init_schema("CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT)")

    result = await executor.execute("INSERT INTO t (name) VALUES (?)", ("a",))
    assert result.rowcount == 1
    assert result.lastrowid == 1
    assert await executor.fetch_one("SELECT name FROM t WHERE id = ?", (1,)) == {"name": "a"}
    assert await executor.fetch_one("SELECT name FROM t WHERE id = ?", (2,)) is None
    assert await executor.fetch_all("SELECT * FROM t") == [{"id": 1, "name": "a"}]

    await executor.close()
    assert executor.closed
    await executor.close()
