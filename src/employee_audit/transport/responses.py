"""Shared JSON response helpers and exception handlers for the HTTP layer."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from employee_audit.errors import EmployeeAuditError, InvalidRequestError
from employee_audit.monitoring.log_metrics import SYSTEM_ERROR, VALIDATION_ERROR
from employee_audit.utils.serialization import json_default
from employee_audit.utils.time import parse_iso_datetime, utc_now_iso

if TYPE_CHECKING:
    from employee_audit.app import AppContext

logger = logging.getLogger(__name__)


class JsonResponse(JSONResponse):
    """JSONResponse that also renders datetimes, enums and dataclasses."""

    def render(self, content: Any) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
            default=json_default,
        ).encode("utf-8")


def error_response(status_code: int, error: str, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, **extra},
    )


def message_response(message: str, **extra: Any) -> JSONResponse:
    return JsonResponse({"message": message, **extra, "timestamp": utc_now_iso()})


def app_context(request: Request) -> "AppContext":
    return request.app.state.context


def query_datetime(request: Request, name: str) -> datetime:
    raw = request.query_params.get(name)
    if not raw:
        raise InvalidRequestError(f"Query parameter '{name}' is required")
    try:
        return parse_iso_datetime(raw)
    except ValueError as exc:
        raise InvalidRequestError(f"Query parameter '{name}' is not an ISO-8601 timestamp") from exc


def query_int(request: Request, name: str, default: int) -> int:
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise InvalidRequestError(f"Query parameter '{name}' must be an integer") from exc


def time_range(request: Request) -> tuple[datetime, datetime]:
    start = query_datetime(request, "startTime")
    end = query_datetime(request, "endTime")
    if start > end:
        raise InvalidRequestError("startTime must not be after endTime")
    return start, end


async def read_json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise InvalidRequestError("Request body must be valid JSON") from exc
    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return body


async def handle_domain_error(request: Request, exc: EmployeeAuditError) -> Response:
    logger.info("Request rejected (%s): %s", exc.code, exc)
    return error_response(exc.status_code, exc.code, str(exc))


async def handle_validation_error(request: Request, exc: ValidationError) -> Response:
    details = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    app_context(request).events.log_error(
        VALIDATION_ERROR,
        "http",
        f"Request validation failed for {request.url.path}",
        details={"errors": details},
    )
    return error_response(400, "validation_error", "Request validation failed", details=details)


async def handle_unexpected_error(request: Request, exc: Exception) -> Response:
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    app_context(request).events.log_error(
        SYSTEM_ERROR, "http", str(exc) or type(exc).__name__, exc
    )
    return error_response(500, "internal_error", "Internal server error")


EXCEPTION_HANDLERS = {
    EmployeeAuditError: handle_domain_error,
    ValidationError: handle_validation_error,
    Exception: handle_unexpected_error,
}
