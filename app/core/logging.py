"""Logging utilities with JSON formatting, redaction, and request correlation.

This module centralizes logging configuration, including:
- Context-aware request_id propagation via contextvars
- Redaction of credentials and raw client addresses on log records
- JSON formatter for machine-friendly logs
- Configurable stdout/file handlers with rotation support
"""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.core.config import LogSettings, settings

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

REDACTED = "[REDACTED]"

# Keys whose values are always replaced
SENSITIVE_KEYS_DEFAULT: set[str] = {
    "authorization",
    "token",
    "secret",
    "password",
    "cookie",
    "set-cookie",
    "client_id",
    "x-forwarded-for",
    "x-real-ip",
}

# user:password@ in redis://, postgresql+asyncpg://, ... URLs
_URL_CREDENTIALS = re.compile(r"(?P<scheme>[a-z][a-z0-9+.\-]*://)[^/@\s]*@", re.IGNORECASE)

# Attributes every LogRecord carries; only ``extra`` fields reach the JSON payload
_EXCLUDED_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))) | {
    "message",
    "asctime",
}


def set_request_id(request_id: str | None) -> None:
    """Store the current request id in a context variable."""

    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def mask_url_credentials(value: str) -> str:
    """Replace the userinfo part of connection URLs.

    Examples:
        >>> mask_url_credentials("redis://:s3cret@cache:6379/0")
        'redis://[REDACTED]@cache:6379/0'
    """

    return _URL_CREDENTIALS.sub(lambda m: f"{m.group('scheme')}{REDACTED}@", value)


def _redact_value(value: Any, sensitive_keys: set[str]) -> Any:
    """Recursively redact sensitive values within mappings and sequences."""

    if isinstance(value, Mapping):
        return {
            k: REDACTED if str(k).lower() in sensitive_keys else _redact_value(v, sensitive_keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_redact_value(v, sensitive_keys) for v in value)
    if isinstance(value, str) and "://" in value:
        return mask_url_credentials(value)
    return value


def _sanitize_record(record: LogRecord, sensitive_keys: set[str]) -> dict[str, Any]:
    """Collect the ``extra`` fields of a record, redacted.

    Args:
        record: LogRecord instance to sanitize.
        sensitive_keys: Lower-cased keys whose values must be replaced.

    Returns:
        Dict with safe fields ready for formatting.
    """

    data: dict[str, Any] = {}

    for key, value in record.__dict__.items():
        if key in _EXCLUDED_ATTRS or key.startswith("_"):
            continue
        if key.lower() in sensitive_keys:
            data[key] = REDACTED
            continue
        data[key] = _redact_value(value, sensitive_keys)

    return data


class RequestIdFilter(logging.Filter):
    """Attach request_id from context when absent on the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact sensitive fields on the record before formatting."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = {k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)}

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in _sanitize_record(record, self.sensitive_keys).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """Format LogRecord as one JSON object per line."""

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self.sensitive_keys = {k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)}
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        record_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            record_data["request_id"] = request_id

        record_data.update(_sanitize_record(record, self.sensitive_keys))

        if record.exc_info:
            record_data["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(record_data, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    """Construct the stdout or (rotating) file handler from configuration."""

    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/speedsearch.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if not log_settings.max_bytes:
        return logging.FileHandler(file_path, encoding="utf-8")

    return RotatingFileHandler(
        file_path,
        maxBytes=log_settings.max_bytes,
        backupCount=log_settings.backup_count,
        encoding="utf-8",
    )


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format.lower() == "plain":
        return logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s",
            defaults={"request_id": "-"},
        )
    return JsonFormatter(sensitive_keys=SENSITIVE_KEYS_DEFAULT)


def configure_logging(
    log_settings: LogSettings | None = None,
    *,
    sql_echo: bool | None = None,
) -> None:
    """Install a single redacting handler on the root logger.

    Safe to call more than once: existing root handlers are replaced.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
        sql_echo: Let SQLAlchemy engine logs through; defaults to DATABASE_ECHO.
    """

    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter(SENSITIVE_KEYS_DEFAULT))
    handler.setFormatter(_build_formatter(cfg.format))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # uvicorn installs its own handlers
    for name in ("uvicorn", "uvicorn.access"):
        logging.getLogger(name).propagate = False

    if sql_echo is None:
        sql_echo = settings.database.echo
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if sql_echo else logging.WARNING)
