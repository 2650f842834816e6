"""Entrypoint for the employee audit HTTP service."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

if __package__ in (None, ""):
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # pragma: no cover

from employee_audit import __version__
from employee_audit.config import load_settings
from employee_audit.logging_utils import configure_logging

logger = logging.getLogger(__name__)


def run_entrypoint() -> None:
    """Configure logging and serve the HTTP application with uvicorn."""
    settings = load_settings()
    configure_logging()
    from employee_audit.transport.http_server import create_http_app

    try:
        import uvicorn
    except ImportError as exc:
        raise RuntimeError("uvicorn is required to serve the HTTP application") from exc

    logger.info("Initializing employee audit service v%s", __version__)
    logger.info("Audit database at: %s", settings.storage.sqlite_path)
    app = create_http_app()
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        ws="none",
        log_config=None,
    )


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
