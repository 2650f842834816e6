"""Configuration management for the employee audit service."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")
    channel_dir: str | None = Field(
        default=None,
        description="Optional directory receiving one file per named log channel",
    )


class StorageSettings(BaseModel):
    sqlite_path: str = Field(default="./data/employee_audit.sqlite")
    sqlite_wal: bool = Field(default=True)
    stats_dialect: Literal["sqlite", "postgresql"] = Field(
        default="sqlite",
        description="Which catalog queries the database monitor issues for live statistics.",
    )


class AuditSettings(BaseModel):
    enabled: bool = Field(default=True, description="Record an audit entry per database call")
    retention_days: int = Field(default=90, ge=0, le=36_500)
    cleanup_enabled: bool = Field(default=True)
    cleanup_hour: int = Field(default=2, ge=0, le=23)
    cleanup_minute: int = Field(default=0, ge=0, le=59)
    recent_limit_default: int = Field(default=100, ge=1)
    recent_limit_max: int = Field(default=1000, ge=1)

    @field_validator("recent_limit_max")
    @classmethod
    def _validate_recent_limit_max(cls, value: int, info: ValidationInfo) -> int:
        default = info.data.get("recent_limit_default")
        if default is not None and value < default:
            raise ValueError("recent_limit_max must be >= recent_limit_default")
        return value


class CacheSettings(BaseModel):
    names: tuple[str, ...] = Field(default=("employees",))
    max_entries: int = Field(default=1000, ge=1, le=1_000_000)


class MonitoringSettings(BaseModel):
    slow_operation_ms: int = Field(
        default=1000,
        ge=1,
        description="Operations slower than this are reported at warning level.",
    )
    prometheus_enabled: bool = Field(default=True)


class ServerSettings(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8080, ge=1024, le=65535)
    api_prefix: str = Field(default="/api/v1")
    trust_forwarded_headers: bool = Field(default=False)

    @field_validator("api_prefix")
    @classmethod
    def _normalize_api_prefix(cls, value: str) -> str:
        value = value.strip()
        if not value or value == "/":
            return ""
        if not value.startswith("/"):
            value = "/" + value
        return value.rstrip("/")


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    audit: AuditSettings = Field(default_factory=AuditSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)


ENV_KEYS = {
    "host": "APP_HOST",
    "port": "APP_PORT",
    "api_prefix": "APP_API_PREFIX",
    "trust_forwarded_headers": "HTTP_TRUST_FORWARDED_HEADERS",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "log_channel_dir": "LOG_CHANNEL_DIR",
    "sqlite_path": "SQLITE_PATH",
    "sqlite_wal": "SQLITE_WAL",
    "stats_dialect": "DB_STATS_DIALECT",
    "audit_enabled": "AUDIT_ENABLED",
    "retention_days": "AUDIT_RETENTION_DAYS",
    "cleanup_enabled": "AUDIT_CLEANUP_ENABLED",
    "cleanup_hour": "AUDIT_CLEANUP_HOUR",
    "cleanup_minute": "AUDIT_CLEANUP_MINUTE",
    "recent_limit_default": "AUDIT_RECENT_LIMIT_DEFAULT",
    "recent_limit_max": "AUDIT_RECENT_LIMIT_MAX",
    "cache_names": "CACHE_NAMES",
    "cache_max_entries": "CACHE_MAX_ENTRIES",
    "slow_operation_ms": "MONITORING_SLOW_OPERATION_MS",
    "prometheus_enabled": "MONITORING_PROMETHEUS_ENABLED",
}

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    if path == ":memory:":
        return path
    candidate = Path(path)
    root = _project_root().resolve()
    if candidate.is_absolute():
        return str(candidate.resolve())
    return str((root / candidate).resolve())


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    log_file_env = os.getenv(ENV_KEYS["log_file"])
    channel_dir_env = os.getenv(ENV_KEYS["log_channel_dir"])
    cache_names = tuple(_split_csv(os.getenv(ENV_KEYS["cache_names"]))) or CacheSettings().names

    settings_data: dict[str, object] = {
        "server": {
            "host": os.getenv(ENV_KEYS["host"], ServerSettings().host),
            "port": _env_int(ENV_KEYS["port"], ServerSettings().port),
            "api_prefix": os.getenv(ENV_KEYS["api_prefix"], ServerSettings().api_prefix),
            "trust_forwarded_headers": _env_bool(
                ENV_KEYS["trust_forwarded_headers"],
                ServerSettings().trust_forwarded_headers,
            ),
        },
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _resolve_path(log_file_env) if log_file_env else None,
            "channel_dir": _resolve_path(channel_dir_env) if channel_dir_env else None,
        },
        "storage": {
            "sqlite_path": _resolve_path(
                os.getenv(ENV_KEYS["sqlite_path"], StorageSettings().sqlite_path)
            ),
            "sqlite_wal": _env_bool(ENV_KEYS["sqlite_wal"], StorageSettings().sqlite_wal),
            "stats_dialect": os.getenv(
                ENV_KEYS["stats_dialect"], StorageSettings().stats_dialect
            ).strip().lower(),
        },
        "audit": {
            "enabled": _env_bool(ENV_KEYS["audit_enabled"], AuditSettings().enabled),
            "retention_days": _env_int(
                ENV_KEYS["retention_days"], AuditSettings().retention_days
            ),
            "cleanup_enabled": _env_bool(
                ENV_KEYS["cleanup_enabled"], AuditSettings().cleanup_enabled
            ),
            "cleanup_hour": _env_int(ENV_KEYS["cleanup_hour"], AuditSettings().cleanup_hour),
            "cleanup_minute": _env_int(
                ENV_KEYS["cleanup_minute"], AuditSettings().cleanup_minute
            ),
            "recent_limit_default": _env_int(
                ENV_KEYS["recent_limit_default"], AuditSettings().recent_limit_default
            ),
            "recent_limit_max": _env_int(
                ENV_KEYS["recent_limit_max"], AuditSettings().recent_limit_max
            ),
        },
        "cache": {
            "names": cache_names,
            "max_entries": _env_int(ENV_KEYS["cache_max_entries"], CacheSettings().max_entries),
        },
        "monitoring": {
            "slow_operation_ms": _env_int(
                ENV_KEYS["slow_operation_ms"], MonitoringSettings().slow_operation_ms
            ),
            "prometheus_enabled": _env_bool(
                ENV_KEYS["prometheus_enabled"], MonitoringSettings().prometheus_enabled
            ),
        },
    }

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    if settings.storage.sqlite_path != ":memory:":
        Path(settings.storage.sqlite_path).parent.mkdir(parents=True, exist_ok=True)

    return settings
