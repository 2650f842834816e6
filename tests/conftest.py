from __future__ import annotations

import asyncio
import contextlib
import os

import pytest

from employee_audit.audit import AUDIT_SCHEMA, AuditLogStore, AuditRecorder, OperationInterceptor
from employee_audit.config import _load_settings_cached
from employee_audit.employees import EMPLOYEE_SCHEMA
from employee_audit.events import StructuredEventLogger
from employee_audit.monitoring import LogMetrics
from employee_audit.storage import SqliteExecutor


def pytest_sessionstart(session: pytest.Session) -> None:
    # Keep unit test runs from writing channel log files.
    os.environ.pop("LOG_CHANNEL_DIR", None)


@pytest.fixture(autouse=True)
def _close_default_event_loop() -> None:
    yield
    policy = asyncio.get_event_loop_policy()
    local = getattr(policy, "_local", None)
    loop = getattr(local, "_loop", None) if local is not None else None
    if loop is not None and not loop.is_running() and not loop.is_closed():
        with contextlib.suppress(Exception):
            loop.close()
    if loop is not None:
        with contextlib.suppress(Exception):
            policy.set_event_loop(None)


@pytest.fixture(autouse=True)
def _fresh_settings() -> None:
    _load_settings_cached.cache_clear()
    yield
    _load_settings_cached.cache_clear()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "audit.sqlite")


@pytest.fixture
def executor(db_path):
    sqlite = SqliteExecutor(db_path)
    sqlite.init_schema(AUDIT_SCHEMA)
    sqlite.init_schema(EMPLOYEE_SCHEMA)
    yield sqlite
    sqlite._close_sync()


@pytest.fixture
def store(executor):
    return AuditLogStore(executor)


@pytest.fixture
def log_metrics():
    return LogMetrics()


@pytest.fixture
def events(log_metrics):
    return StructuredEventLogger(log_metrics)


@pytest.fixture
def recorder(store, events):
    return AuditRecorder(store, events)


@pytest.fixture
def interceptor(recorder):
    return OperationInterceptor(recorder)
