"""Structured logging for the chat core.

Every record is emitted as one JSON object. Chat identifiers (message,
batch, session and user ids) travel in ``extra={"context": {...}}``, built
with :func:`log_context`, and land under the ``context`` key.
"""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import DEFAULT_LOG_PATH

# aiosqlite logs every proxied call at DEBUG
_QUIET_LOGGERS = ("aiosqlite", "uvicorn.access")
_MAX_LOG_BYTES = 10 * 1024 * 1024
_LOG_BACKUPS = 5


class JSONFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack"] = self.formatStack(record.stack_info)

        # Identifiers may be datetimes or enums
        return json.dumps(entry, default=str)


def build_logging_config(level: str, log_file: str | Path) -> dict[str, Any]:
    """dictConfig mapping: JSON to stdout and to a rotating file."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": JSONFormatter}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "json",
                "filename": str(log_file),
                "maxBytes": _MAX_LOG_BYTES,
                "backupCount": _LOG_BACKUPS,
                "encoding": "utf-8",
            },
        },
        "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
        "root": {"level": level.upper(), "handlers": ["console", "file"]},
    }


def setup_logging(log_level: str | None = None, log_file: str | Path | None = None) -> None:
    """Install the JSON logging configuration.

    Args:
        log_level: Root level; falls back to LOG_LEVEL, then INFO.
        log_file: Rotating log path; defaults to 04_logs/app.log.
    """
    level = log_level or os.getenv("LOG_LEVEL", "INFO")
    path = Path(log_file) if log_file else DEFAULT_LOG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(build_logging_config(level, path))


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass ``__name__``."""
    return logging.getLogger(name)


def log_context(**fields: Any) -> dict[str, Any]:
    """Build the ``extra`` mapping for a log call, dropping empty values."""
    return {"context": {k: v for k, v in fields.items() if v is not None}}
