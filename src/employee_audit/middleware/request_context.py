"""Per-request correlation context and request logging."""

from __future__ import annotations

import time
import uuid
from typing import Any, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from employee_audit.context import (
    ANONYMOUS_USER,
    RequestContext,
    reset_request_context,
    set_request_context,
)
from employee_audit.events import StructuredEventLogger
from employee_audit.logging_utils import REQUEST_CHANNEL, get_channel_logger
from employee_audit.utils.masking import is_sensitive_key, sanitize_log_value

REQUEST_ID_HEADER = "X-Request-ID"
SESSION_ID_HEADER = "X-Session-ID"
USER_ID_HEADER = "X-User-ID"

_MAX_HEADER_VALUE = 256


def _sanitize_header(value: str | None) -> str | None:
    if value is None:
        return None
    value = sanitize_log_value(value.strip())[:_MAX_HEADER_VALUE]
    return value or None


def get_client_ip(request: Request, trust_forwarded_headers: bool = False) -> str:
    """Get client IP with optional trusted proxy header support."""
    if trust_forwarded_headers:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            # First entry is the original client.
            return sanitize_log_value(forwarded_for.split(",")[0].strip())

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return sanitize_log_value(real_ip.strip())

    if request.client:
        return request.client.host

    return "unknown"


def loggable_headers(request: Request) -> dict[str, str]:
    """Request headers with credentials and cookies removed."""
    return {
        key: sanitize_log_value(value)
        for key, value in request.headers.items()
        if not is_sensitive_key(key)
    }


def _content_length(headers: Any) -> int | None:
    raw = headers.get("content-length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Establishes the request context for everything downstream.

    Features:
    - Fresh request id, session id from header or generated
    - Client ip, user agent and user id captured once per request
    - REQUEST channel start/end lines and an API call event
    - Correlation ids echoed back as response headers
    """

    EXEMPT_PATHS = frozenset({"/health", "/metrics"})

    def __init__(
        self,
        app: Callable,
        events: StructuredEventLogger,
        trust_forwarded_headers: bool = False,
        exempt_paths: frozenset[str] | None = None,
    ) -> None:
        super().__init__(app)
        self._events = events
        self._trust_forwarded_headers = trust_forwarded_headers
        self._exempt_paths = self.EXEMPT_PATHS if exempt_paths is None else exempt_paths
        self._request_log = get_channel_logger(REQUEST_CHANNEL)

    def build_context(self, request: Request) -> RequestContext:
        return RequestContext(
            request_id=str(uuid.uuid4()),
            session_id=_sanitize_header(request.headers.get(SESSION_ID_HEADER))
            or str(uuid.uuid4()),
            ip_address=get_client_ip(
                request, trust_forwarded_headers=self._trust_forwarded_headers
            ),
            user_agent=_sanitize_header(request.headers.get("user-agent")),
            user_id=_sanitize_header(request.headers.get(USER_ID_HEADER)) or ANONYMOUS_USER,
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self._exempt_paths:
            return await call_next(request)

        ctx = self.build_context(request)
        token = set_request_context(ctx)
        safe_path = sanitize_log_value(request.url.path)
        started = time.perf_counter()
        status_code = 500
        response: Response | None = None
        try:
            self._request_log.info(
                "Request started: requestId=%s method=%s uri=%s ip=%s userAgent=%s",
                ctx.request_id,
                request.method,
                safe_path,
                ctx.ip_address,
                ctx.user_agent,
            )
            self._request_log.debug(
                "Request headers: requestId=%s headers=%s",
                ctx.request_id,
                loggable_headers(request),
            )
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = ctx.request_id
            if ctx.session_id:
                response.headers[SESSION_ID_HEADER] = ctx.session_id
            return response
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            log = self._request_log.warning if status_code >= 400 else self._request_log.info
            log(
                "Request completed: requestId=%s method=%s uri=%s status=%s durationMs=%d",
                ctx.request_id,
                request.method,
                safe_path,
                status_code,
                int(duration_ms),
            )
            self._events.log_api_call(
                request.method,
                safe_path,
                status_code,
                duration_ms,
                request_size=_content_length(request.headers),
                response_size=_content_length(response.headers) if response else None,
            )
            reset_request_context(token)
