from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from employee_audit.audit import RetentionJob, RetentionScheduler
from employee_audit.audit.retention import next_daily_run
from employee_audit.context import get_request_context


@pytest.mark.asyncio
async def test_run_once_deletes_with_zero_retention(recorder, store) -> None:
    await recorder.log_select_operation("employees", "unknown", "SELECT ...", 1)
    await recorder.log_select_operation("employees", "unknown", "SELECT ...", 1)

    assert await RetentionJob(recorder, 0).run_once() == 2
    assert await store.find_recent(10) == []


@pytest.mark.asyncio
async def test_run_once_runs_under_system_context() -> None:
    seen = []

    async def cleanup(days: int) -> int:
        seen.append((days, get_request_context().user_id))
        return 0

    recorder = AsyncMock()
    recorder.cleanup_old_audit_logs.side_effect = cleanup

    assert await RetentionJob(recorder, 90).run_once() == 0
    assert seen == [(90, "system")]


@pytest.mark.asyncio
async def test_overlapping_run_is_skipped() -> None:
    release = asyncio.Event()

    async def slow_cleanup(days: int) -> int:
        await release.wait()
        return 5

    recorder = AsyncMock()
    recorder.cleanup_old_audit_logs.side_effect = slow_cleanup
    job = RetentionJob(recorder, 90)

    first = asyncio.create_task(job.run_once())
    await asyncio.sleep(0)
    assert job.running
    assert await job.run_once() is None

    release.set()
    assert await first == 5
    assert recorder.cleanup_old_audit_logs.await_count == 1


@pytest.mark.asyncio
async def test_cleanup_errors_propagate() -> None:
    recorder = AsyncMock()
    recorder.cleanup_old_audit_logs.side_effect = RuntimeError("locked")
    job = RetentionJob(recorder, 90)

    with pytest.raises(RuntimeError, match="locked"):
        await job.run_once()
    assert not job.running


def test_negative_retention_is_rejected() -> None:
    with pytest.raises(ValueError):
        RetentionJob(AsyncMock(), -1)


@pytest.mark.parametrize(
    ("now", "expected"),
    [
        (datetime(2024, 5, 1, 1, 30, tzinfo=timezone.utc), datetime(2024, 5, 1, 2, 0, tzinfo=timezone.utc)),
        (datetime(2024, 5, 1, 2, 0, tzinfo=timezone.utc), datetime(2024, 5, 2, 2, 0, tzinfo=timezone.utc)),
        (datetime(2024, 12, 31, 23, 0, tzinfo=timezone.utc), datetime(2025, 1, 1, 2, 0, tzinfo=timezone.utc)),
    ],
)
def test_next_daily_run(now: datetime, expected: datetime) -> None:
    assert next_daily_run(now, 2, 0) == expected


@pytest.mark.asyncio
async def test_scheduler_start_and_stop() -> None:
    scheduler = RetentionScheduler(RetentionJob(AsyncMock(), 90))
    assert not scheduler.started

    scheduler.start()
    scheduler.start()
    assert scheduler.started

    await scheduler.stop()
    assert not scheduler.started
    await scheduler.stop()
