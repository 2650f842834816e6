from __future__ import annotations

import json
import logging

import pytest

from employee_audit.context import RequestContext, request_scope
from employee_audit.events import StructuredEventLogger


def _payload(caplog, label: str) -> dict:
    for record in caplog.records:
        message = record.getMessage()
        if message.startswith(f"{label}: "):
            return json.loads(message[len(label) + 2 :])
    raise AssertionError(f"no {label!r} record captured")


def test_data_access_carries_request_context(events, caplog) -> None:
    ctx = RequestContext(request_id="req-7", session_id="sess-7", user_id="bob")
    with caplog.at_level(logging.INFO, logger="AUDIT"), request_scope(ctx):
        events.log_data_access("UPDATE", "employees", "3", {"name": "a"}, {"name": "b"})

    payload = _payload(caplog, "Data access audit")
    assert payload["eventType"] == "DATA_ACCESS"
    assert payload["requestId"] == "req-7"
    assert payload["userId"] == "bob"
    assert payload["oldValues"] == {"name": "a"}
    assert payload["newValues"] == {"name": "b"}


def test_sensitive_details_are_masked(events, caplog) -> None:
    with caplog.at_level(logging.INFO, logger="AUDIT"):
        events.log_business_operation(
            "CREATE_EMPLOYEE", "Employee", "1", details={"password": "secret", "name": "Alice"}
        )

    payload = _payload(caplog, "Business operation audit")
    assert payload["details"]["password"] == "***MASKED***"
    assert payload["details"]["name"] == "Alice"
    assert payload["userId"] == "anonymous"


def test_unserializable_payload_is_dropped_not_raised(events, caplog) -> None:
    with caplog.at_level(logging.WARNING):
        events.log_system_event("STARTUP", "test", "boot", details={("a", "b"): 1})

    assert "System event serialization failed" in caplog.text


@pytest.mark.parametrize(
    ("status_code", "duration_ms", "level"),
    [(200, 5, logging.INFO), (200, 5000, logging.WARNING), (404, 5, logging.ERROR)],
)
def test_api_call_level(events, caplog, status_code: int, duration_ms: float, level: int) -> None:
    with caplog.at_level(logging.INFO, logger="AUDIT"):
        events.log_api_call("GET", "/api/v1/employees", status_code, duration_ms)

    [record] = [r for r in caplog.records if r.getMessage().startswith("API call audit")]
    assert record.levelno == level


def test_slow_performance_event_is_a_warning(caplog) -> None:
    events = StructuredEventLogger(slow_operation_ms=10)
    with caplog.at_level(logging.INFO, logger="PERFORMANCE"):
        events.log_performance("findAll", 50)
        events.log_performance("findById", 2)

    levels = [r.levelno for r in caplog.records if r.name == "PERFORMANCE"]
    assert levels == [logging.WARNING, logging.INFO]
    assert _payload(caplog, "Performance monitoring")["slow"] is True


def test_security_event_goes_to_security_channel(events, caplog) -> None:
    with caplog.at_level(logging.INFO, logger="SECURITY"):
        events.log_security_event("ACCESS_DENIED", "HIGH", "blocked", user_id="mallory")

    [record] = [r for r in caplog.records if r.name == "SECURITY"]
    assert record.levelno == logging.WARNING
    assert _payload(caplog, "Security event")["userId"] == "mallory"


def test_events_feed_log_metrics(log_metrics, events) -> None:
    events.log_user_operation("VIEW", "Employee", "1")
    events.log_security_event("LOGIN_FAILED", "MEDIUM", "bad password")
    events.log_performance("query", 12)
    events.log_error("BUSINESS_ERROR", "EmployeeService", "duplicate")
    events.log_api_call("POST", "/api/v1/employees", 201, 3)

    stats = log_metrics.get_log_stats()
    assert stats.log_counts["AUDIT"] == 1
    assert stats.log_counts["SECURITY"] == 1
    assert stats.log_counts["PERFORMANCE"] == 1
    assert stats.error_counts["BUSINESS_ERROR"] == 1
    assert stats.total_logs == 5


def test_logger_without_metrics_still_emits(caplog) -> None:
    events = StructuredEventLogger()
    with caplog.at_level(logging.ERROR, logger="AUDIT"):
        events.log_error("SYSTEM_ERROR", "test", "boom", exc=RuntimeError("boom"))

    assert _payload(caplog, "Error audit")["exceptionClass"] == "RuntimeError"


def test_malformed_arguments_are_dropped_not_raised(events, caplog) -> None:
    with caplog.at_level(logging.WARNING):
        events.log_performance("employee.lookup", None)
        events.log_user_operation("CREATE", "Employee", details=["x"])
        events.log_api_call("GET", "/api/v1/employees", 200, None)

    assert "Performance monitoring payload could not be built" in caplog.text
    assert "User operation audit payload could not be built" in caplog.text
    assert "API call audit payload could not be built" in caplog.text
