"""Scheduled removal of expired audit entries."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timedelta, timezone

from employee_audit.audit.recorder import AuditRecorder
from employee_audit.context import request_scope, system_context
from employee_audit.utils.time import utc_now

logger = logging.getLogger(__name__)


class RetentionJob:
    def __init__(self, recorder: AuditRecorder, retention_days: int) -> None:
        if retention_days < 0:
            raise ValueError("retention_days must be >= 0")
        self._recorder = recorder
        self.retention_days = retention_days
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def run_once(self) -> int | None:
        """Run one cleanup pass.

        Returns the number of deleted entries, or None when a previous pass
        is still running. Cleanup errors propagate.
        """
        if self._lock.locked():
            logger.warning("Audit log cleanup already running; skipping this run")
            return None
        async with self._lock:
            with request_scope(system_context("audit-retention")):
                logger.info(
                    "Starting audit log cleanup (retention %d days)", self.retention_days
                )
                deleted = await self._recorder.cleanup_old_audit_logs(self.retention_days)
                logger.info("Audit log cleanup finished: %d entries removed", deleted)
                return deleted


def next_daily_run(now: datetime, hour: int, minute: int) -> datetime:
    """Next UTC occurrence of ``hour:minute`` strictly after ``now``."""
    now = now.astimezone(timezone.utc)
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class RetentionScheduler:
    """Runs a RetentionJob once a day from an asyncio task."""

    def __init__(self, job: RetentionJob, hour: int = 2, minute: int = 0) -> None:
        self._job = job
        self._hour = hour
        self._minute = minute
        self._task: asyncio.Task[None] | None = None

    @property
    def started(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.started:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(
            "Audit retention scheduled daily at %02d:%02d UTC", self._hour, self._minute
        )

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _loop(self) -> None:
        while True:
            now = utc_now()
            run_at = next_daily_run(now, self._hour, self._minute)
            await asyncio.sleep((run_at - now).total_seconds())
            try:
                await self._job.run_once()
            except Exception:
                logger.exception("Scheduled audit log cleanup failed")
