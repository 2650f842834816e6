"""Read access to the database audit trail, plus manual cleanup."""

from __future__ import annotations

from collections.abc import Sequence

from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from employee_audit.audit.models import (
    AuditLogEntry,
    normalize_operation_status,
    normalize_operation_type,
)
from employee_audit.errors import InvalidRequestError
from employee_audit.transport.responses import (
    JsonResponse,
    app_context,
    message_response,
    query_int,
    time_range,
)


def _entries(entries: Sequence[AuditLogEntry]) -> Response:
    return JsonResponse([entry.to_dict() for entry in entries])


def _operation_type(request: Request) -> str:
    try:
        return normalize_operation_type(request.path_params["operation_type"])
    except ValueError as exc:
        raise InvalidRequestError(str(exc)) from exc


async def audit_statistics(request: Request) -> Response:
    stats = await app_context(request).recorder.get_audit_statistics()
    return JsonResponse(stats.to_dict())


async def by_operation_type(request: Request) -> Response:
    recorder = app_context(request).recorder
    return _entries(await recorder.find_by_operation_type(_operation_type(request)))


async def by_table(request: Request) -> Response:
    recorder = app_context(request).recorder
    return _entries(await recorder.find_by_table_name(request.path_params["table_name"]))


async def by_user(request: Request) -> Response:
    recorder = app_context(request).recorder
    return _entries(await recorder.find_by_user_id(request.path_params["user_id"]))


async def by_session(request: Request) -> Response:
    recorder = app_context(request).recorder
    return _entries(await recorder.find_by_session_id(request.path_params["session_id"]))


async def by_request(request: Request) -> Response:
    recorder = app_context(request).recorder
    return _entries(await recorder.find_by_request_id(request.path_params["request_id"]))


async def by_record(request: Request) -> Response:
    recorder = app_context(request).recorder
    return _entries(await recorder.find_by_record_id(request.path_params["record_id"]))


async def by_status(request: Request) -> Response:
    try:
        status = normalize_operation_status(request.path_params["status"])
    except ValueError as exc:
        raise InvalidRequestError(str(exc)) from exc
    return _entries(await app_context(request).recorder.find_by_operation_status(status))


async def by_time_range(request: Request) -> Response:
    start, end = time_range(request)
    return _entries(await app_context(request).recorder.find_by_created_at_between(start, end))


async def by_table_and_record(request: Request) -> Response:
    recorder = app_context(request).recorder
    return _entries(
        await recorder.find_by_table_name_and_record_id(
            request.path_params["table_name"], request.path_params["record_id"]
        )
    )


async def by_user_and_time_range(request: Request) -> Response:
    start, end = time_range(request)
    recorder = app_context(request).recorder
    return _entries(
        await recorder.find_by_user_id_and_created_at_between(
            request.path_params["user_id"], start, end
        )
    )


async def by_operation_type_and_table(request: Request) -> Response:
    recorder = app_context(request).recorder
    return _entries(
        await recorder.find_by_operation_type_and_table_name(
            _operation_type(request), request.path_params["table_name"]
        )
    )


async def recent(request: Request) -> Response:
    ctx = app_context(request)
    limit = query_int(request, "limit", ctx.settings.audit.recent_limit_default)
    limit = max(1, min(limit, ctx.settings.audit.recent_limit_max))
    return _entries(await ctx.recorder.find_recent_logs(limit))


async def errors(request: Request) -> Response:
    start, end = time_range(request)
    return _entries(await app_context(request).recorder.find_error_logs(start, end))


async def errors_by_user(request: Request) -> Response:
    recorder = app_context(request).recorder
    return _entries(await recorder.find_error_logs_by_user_id(request.path_params["user_id"]))


async def cleanup(request: Request) -> Response:
    ctx = app_context(request)
    retention_days = query_int(request, "retentionDays", ctx.settings.audit.retention_days)
    if retention_days < 0:
        raise InvalidRequestError("retentionDays must be >= 0")
    deleted = await ctx.recorder.cleanup_old_audit_logs(retention_days)
    return message_response(
        "Audit log cleanup completed",
        deletedCount=deleted,
        retentionDays=retention_days,
    )


def audit_routes(prefix: str) -> list[Route]:
    base = f"{prefix}/audit/database"
    logs = f"{base}/logs"
    return [
        Route(f"{base}/stats", audit_statistics, methods=["GET"]),
        Route(f"{logs}/recent", recent, methods=["GET"]),
        Route(f"{logs}/errors", errors, methods=["GET"]),
        Route(f"{logs}/errors/user/{{user_id}}", errors_by_user, methods=["GET"]),
        Route(f"{logs}/time-range", by_time_range, methods=["GET"]),
        Route(f"{logs}/cleanup", cleanup, methods=["DELETE"]),
        Route(f"{logs}/operation/{{operation_type}}", by_operation_type, methods=["GET"]),
        Route(
            f"{logs}/operation/{{operation_type}}/table/{{table_name}}",
            by_operation_type_and_table,
            methods=["GET"],
        ),
        Route(f"{logs}/table/{{table_name}}", by_table, methods=["GET"]),
        Route(
            f"{logs}/table/{{table_name}}/record/{{record_id}}",
            by_table_and_record,
            methods=["GET"],
        ),
        Route(f"{logs}/user/{{user_id}}", by_user, methods=["GET"]),
        Route(f"{logs}/user/{{user_id}}/time-range", by_user_and_time_range, methods=["GET"]),
        Route(f"{logs}/session/{{session_id}}", by_session, methods=["GET"]),
        Route(f"{logs}/request/{{request_id}}", by_request, methods=["GET"]),
        Route(f"{logs}/record/{{record_id}}", by_record, methods=["GET"]),
        Route(f"{logs}/status/{{status}}", by_status, methods=["GET"]),
    ]
