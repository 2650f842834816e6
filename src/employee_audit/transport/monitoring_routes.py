"""Monitoring endpoints over the in-process aggregators."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from employee_audit.errors import NotFoundError
from employee_audit.transport.responses import JsonResponse, app_context, message_response


async def cache_stats(request: Request) -> Response:
    return JsonResponse(app_context(request).cache_metrics.get_cache_stats().to_dict())


async def clear_all_caches(request: Request) -> Response:
    cleared = app_context(request).cache_metrics.clear_all_caches()
    return message_response("All caches have been cleared", clearedCaches=cleared)


async def clear_cache(request: Request) -> Response:
    name = request.path_params["name"]
    if not app_context(request).cache_metrics.clear_cache(name):
        raise NotFoundError(f"Cache not found: {name}")
    return message_response(f"Cache {name} has been cleared", cacheName=name)


async def log_stats(request: Request) -> Response:
    return JsonResponse(app_context(request).log_metrics.get_log_stats().to_dict())


async def log_health(request: Request) -> Response:
    return JsonResponse(app_context(request).log_metrics.get_log_health_status().to_dict())


async def reset_log_stats(request: Request) -> Response:
    app_context(request).log_metrics.reset_log_stats()
    return message_response("Log statistics have been reset")


async def transaction_stats(request: Request) -> Response:
    return JsonResponse(app_context(request).transaction_metrics.get_transaction_stats().to_dict())


async def reset_transaction_stats(request: Request) -> Response:
    app_context(request).transaction_metrics.reset()
    return message_response("Transaction statistics have been reset")


async def connection_stats(request: Request) -> Response:
    stats = await app_context(request).database_metrics.get_connection_stats()
    return JsonResponse(stats.to_dict())


async def performance_stats(request: Request) -> Response:
    return JsonResponse(app_context(request).database_metrics.get_performance_stats().to_dict())


async def database_health(request: Request) -> Response:
    health = await app_context(request).database_metrics.get_database_health()
    return JsonResponse(health.to_dict())


async def table_stats(request: Request) -> Response:
    stats = await app_context(request).database_metrics.get_table_stats()
    return JsonResponse(stats.to_dict())


async def database_stats(request: Request) -> Response:
    stats = await app_context(request).database_metrics.get_database_stats()
    return JsonResponse(stats.to_dict())


def monitoring_routes(prefix: str) -> list[Route]:
    base = f"{prefix}/monitoring"
    return [
        Route(f"{base}/cache/stats", cache_stats, methods=["GET"]),
        Route(f"{base}/cache/clear", clear_all_caches, methods=["DELETE"]),
        Route(f"{base}/cache/clear/{{name}}", clear_cache, methods=["DELETE"]),
        Route(f"{base}/logs/stats", log_stats, methods=["GET"]),
        Route(f"{base}/logs/health", log_health, methods=["GET"]),
        Route(f"{base}/logs/reset", reset_log_stats, methods=["POST"]),
        Route(f"{base}/transaction/stats", transaction_stats, methods=["GET"]),
        Route(f"{base}/transaction/reset", reset_transaction_stats, methods=["POST"]),
        Route(f"{base}/database/connection/stats", connection_stats, methods=["GET"]),
        Route(f"{base}/database/performance/stats", performance_stats, methods=["GET"]),
        Route(f"{base}/database/health/stats", database_health, methods=["GET"]),
        Route(f"{base}/database/table/stats", table_stats, methods=["GET"]),
        Route(f"{base}/database/stats", database_stats, methods=["GET"]),
    ]
