"""Starlette HTTP server assembly."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from employee_audit import __version__
from employee_audit.app import AppContext, get_app_context
from employee_audit.middleware.request_context import RequestContextMiddleware
from employee_audit.monitoring.exposition import PROMETHEUS_CONTENT_TYPE
from employee_audit.transport.audit_routes import audit_routes
from employee_audit.transport.employee_routes import employee_routes
from employee_audit.transport.monitoring_routes import monitoring_routes
from employee_audit.transport.responses import EXCEPTION_HANDLERS, app_context, error_response

logger = logging.getLogger(__name__)


async def health_handler(request: Request) -> Response:
    return JSONResponse({"status": "healthy", "version": __version__})


async def metrics_handler(request: Request) -> Response:
    ctx = app_context(request)
    if not ctx.settings.monitoring.prometheus_enabled:
        return error_response(404, "not_found", "Prometheus exposition is disabled")
    return Response(ctx.exporter.render(), media_type=PROMETHEUS_CONTENT_TYPE)


def create_http_app(context: AppContext | None = None) -> Starlette:
    """Create the HTTP application around ``context`` (the process-wide one by default)."""
    ctx = context or get_app_context()
    settings = ctx.settings
    prefix = settings.server.api_prefix

    middleware = [
        Middleware(
            RequestContextMiddleware,
            events=ctx.events,
            trust_forwarded_headers=settings.server.trust_forwarded_headers,
        ),
    ]

    routes = [
        Route("/health", endpoint=health_handler, methods=["GET"]),
        Route("/metrics", endpoint=metrics_handler, methods=["GET"]),
        *monitoring_routes(prefix),
        *audit_routes(prefix),
        *employee_routes(prefix),
    ]

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info("Starting employee audit HTTP server v%s...", __version__)
        if settings.audit.cleanup_enabled:
            ctx.retention_scheduler.start()
        ctx.events.log_system_event("STARTUP", "http-server", "HTTP server started")
        try:
            yield
        finally:
            logger.info("Stopping employee audit HTTP server...")
            ctx.events.log_system_event("SHUTDOWN", "http-server", "HTTP server stopping")
            await ctx.close()

    app = Starlette(
        routes=routes,
        middleware=middleware,
        exception_handlers=EXCEPTION_HANDLERS,
        lifespan=lifespan,
    )
    app.state.context = ctx
    return app
