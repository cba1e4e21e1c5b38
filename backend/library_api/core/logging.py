"""
Structured logging configuration.

Production writes one JSON object per line; other environments get colored
single-line output. Every record is stamped with the current request id, and
background import logs carry their job id through ``get_context_logger``.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

from library_api.core.config import get_settings

# Set per request by RequestLoggingMiddleware
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "multipart")


class RequestContextFilter(logging.Filter):
    """Copy the active request id onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


class JSONFormatter(logging.Formatter):
    """Format log records as JSON for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        if getattr(record, "request_id", None):
            entry["request_id"] = record.request_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(getattr(record, "extra_fields", {}))

        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Colored, human-readable formatter."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)

        tags = []
        request_id = getattr(record, "request_id", None)
        if request_id:
            tags.append(request_id[:8])
        job_id = getattr(record, "extra_fields", {}).get("job_id")
        if job_id:
            tags.append(f"job {job_id[:8]}")
        prefix = "".join(f"[{tag}] " for tag in tags)

        line = f"{color}{record.levelname:8}{self.RESET} {prefix}{record.name}: {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging() -> None:
    """Install a single stdout handler on the root logger."""
    settings = get_settings()

    log_format = settings.LOG_FORMAT.lower()
    if log_format == "auto":
        log_format = "json" if settings.ENVIRONMENT == "production" else "text"

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(JSONFormatter() if log_format == "json" else DevelopmentFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root_logger.handlers = [handler]

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """Adds fixed context fields to every record, merged with per-call ones."""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = kwargs.get("extra", {})
        extra["extra_fields"] = {**self.extra, **extra.get("extra_fields", {})}
        kwargs["extra"] = extra
        return msg, kwargs


def get_context_logger(name: str, **context: Any) -> LoggerAdapter:
    """Get a logger whose records all carry ``context``, e.g. ``job_id``."""
    return LoggerAdapter(get_logger(name), context)
