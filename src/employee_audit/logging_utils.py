"""Logging helpers for the employee audit service."""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

from employee_audit.config import load_settings

AUDIT_CHANNEL = "AUDIT"
SECURITY_CHANNEL = "SECURITY"
PERFORMANCE_CHANNEL = "PERFORMANCE"
REQUEST_CHANNEL = "REQUEST"
APPLICATION_CHANNEL = "APPLICATION"

CHANNELS = (
    AUDIT_CHANNEL,
    SECURITY_CHANNEL,
    PERFORMANCE_CHANNEL,
    REQUEST_CHANNEL,
    APPLICATION_CHANNEL,
)

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_logging_configured = False
_logging_lock = threading.Lock()
_channel_handlers: list[logging.Handler] = []

_logger = logging.getLogger(__name__)


def _formatter() -> logging.Formatter:
    return logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)


def configure_logging() -> None:
    """Configure structured logging for the service."""
    global _logging_configured

    settings = load_settings()
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(_formatter())
    handlers.append(stream_handler)

    if settings.logging.file:
        try:
            Path(settings.logging.file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(settings.logging.file)
            file_handler.setFormatter(_formatter())
            handlers.append(file_handler)
        except OSError as exc:
            _logger.warning("Failed to open log file %s: %s", settings.logging.file, exc)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    _configure_channels(settings.logging.channel_dir)

    _logging_configured = True


def _configure_channels(channel_dir: str | None) -> None:
    """Attach one file per named channel, replacing handlers from a previous call."""
    for handler in _channel_handlers:
        for channel in CHANNELS:
            logging.getLogger(channel).removeHandler(handler)
        handler.close()
    _channel_handlers.clear()

    if not channel_dir:
        return

    try:
        Path(channel_dir).mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        _logger.warning("Failed to create log channel directory %s: %s", channel_dir, exc)
        return

    for channel in CHANNELS:
        path = Path(channel_dir) / f"{channel.lower()}.log"
        try:
            handler = logging.FileHandler(path)
        except OSError as exc:
            _logger.warning("Failed to open channel log file %s: %s", path, exc)
            continue
        handler.setFormatter(_formatter())
        logging.getLogger(channel).addHandler(handler)
        _channel_handlers.append(handler)


def get_logger(name: str) -> logging.Logger:
    if not _logging_configured:
        with _logging_lock:
            if not _logging_configured:
                configure_logging()
    return logging.getLogger(name)


def get_channel_logger(channel: str) -> logging.Logger:
    """Return the logger backing one of the named event channels."""
    if channel not in CHANNELS:
        raise ValueError(f"Unknown log channel: {channel}")
    return logging.getLogger(channel)
