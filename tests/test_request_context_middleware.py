"""Tests for request context establishment and request logging."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from employee_audit.context import get_request_context, get_request_context_optional
from employee_audit.middleware import RequestContextMiddleware, get_client_ip
from employee_audit.middleware.request_context import loggable_headers


def _request(headers: dict[str, str] | None = None, client=("127.0.0.1", 12345)) -> Request:
    raw_headers = [
        (k.lower().encode("utf-8"), v.encode("utf-8")) for k, v in (headers or {}).items()
    ]
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/v1/employees",
        "headers": raw_headers,
        "scheme": "http",
        "server": ("testserver", 80),
        "client": client,
    }
    return Request(scope)


async def _whoami(request: Request) -> JSONResponse:
    ctx = get_request_context()
    return JSONResponse(
        {
            "requestId": ctx.request_id,
            "sessionId": ctx.session_id,
            "userId": ctx.user_id,
            "ipAddress": ctx.ip_address,
            "userAgent": ctx.user_agent,
        }
    )


async def _health(request: Request) -> JSONResponse:
    return JSONResponse({"hasContext": get_request_context_optional() is not None})


async def _boom(request: Request) -> JSONResponse:
    raise RuntimeError("handler exploded")


def _client(events, trust_forwarded_headers: bool = False) -> TestClient:
    app = Starlette(
        routes=[
            Route("/whoami", _whoami),
            Route("/health", _health),
            Route("/boom", _boom),
        ],
        middleware=[
            Middleware(
                RequestContextMiddleware,
                events=events,
                trust_forwarded_headers=trust_forwarded_headers,
            )
        ],
    )
    return TestClient(app, raise_server_exceptions=False)


def test_context_is_visible_downstream_and_echoed() -> None:
    events = MagicMock()
    client = _client(events)

    response = client.get(
        "/whoami",
        headers={"X-Session-ID": "sess-1", "X-User-ID": "alice", "User-Agent": "pytest"},
    )

    body = response.json()
    assert response.status_code == 200
    assert body["sessionId"] == "sess-1"
    assert body["userId"] == "alice"
    assert body["userAgent"] == "pytest"
    assert response.headers["X-Request-ID"] == body["requestId"]
    assert response.headers["X-Session-ID"] == "sess-1"
    events.log_api_call.assert_called_once()
    assert events.log_api_call.call_args.args[:3] == ("GET", "/whoami", 200)


def test_missing_headers_get_generated_ids_and_anonymous_user() -> None:
    client = _client(MagicMock())

    first = client.get("/whoami").json()
    second = client.get("/whoami").json()

    assert first["userId"] == "anonymous"
    assert first["sessionId"]
    assert first["requestId"] != second["requestId"]
    assert first["sessionId"] != second["sessionId"]


def test_request_id_header_from_client_is_not_trusted() -> None:
    client = _client(MagicMock())

    body = client.get("/whoami", headers={"X-Request-ID": "forged"}).json()

    assert body["requestId"] != "forged"


def test_exempt_paths_skip_context() -> None:
    events = MagicMock()
    client = _client(events)

    response = client.get("/health")

    assert response.json() == {"hasContext": False}
    assert "X-Request-ID" not in response.headers
    events.log_api_call.assert_not_called()


def test_failed_request_is_logged_as_500(caplog) -> None:
    events = MagicMock()
    client = _client(events)

    with caplog.at_level(logging.INFO, logger="REQUEST"):
        response = client.get("/boom")

    assert response.status_code == 500
    assert "Request started: requestId=" in caplog.text
    completed = [r for r in caplog.records if r.getMessage().startswith("Request completed")]
    assert completed[0].levelno == logging.WARNING
    assert "status=500" in completed[0].getMessage()
    assert events.log_api_call.call_args.args[2] == 500
    assert get_request_context_optional() is None


@pytest.mark.parametrize(
    ("trust", "headers", "expected"),
    [
        (False, {"X-Forwarded-For": "203.0.113.9"}, "127.0.0.1"),
        (True, {"X-Forwarded-For": "203.0.113.9, 10.0.0.1"}, "203.0.113.9"),
        (True, {"X-Real-IP": "198.51.100.4"}, "198.51.100.4"),
        (True, {}, "127.0.0.1"),
    ],
)
def test_get_client_ip(trust: bool, headers: dict[str, str], expected: str) -> None:
    assert get_client_ip(_request(headers), trust_forwarded_headers=trust) == expected


def test_get_client_ip_without_client() -> None:
    assert get_client_ip(_request(client=None)) == "unknown"


def test_loggable_headers_drop_credentials() -> None:
    headers = loggable_headers(
        _request({"Authorization": "Bearer abc", "Cookie": "sid=1", "Accept": "application/json"})
    )

    assert headers == {"accept": "application/json"}
