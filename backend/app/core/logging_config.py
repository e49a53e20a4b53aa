"""
Structured logging configuration.

Provides:
    • JSON-formatted logs for production (one object per line)
    • Pretty console logs for development, tagged with alert/channel ids
    • Request-scoped context (request_id, user_id, endpoint) via ContextVar

Usage:
    from backend.app.core.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
    logger.info("Alert raised", extra={"alert_id": alert.id, "category": "fire"})
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

from backend.app.core.config import settings

_request_context: ContextVar[Dict[str, Any]] = ContextVar(
    "request_context", default={}
)

# Record attributes passed through ``extra=`` that end up in JSON output
_EXTRA_FIELDS = (
    "alert_id", "originator_id", "category", "channel", "status",
    "recipient_count", "duration_ms", "status_code", "endpoint",
)

_NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "aiosqlite", "sqlalchemy.engine")


def set_request_context(**kwargs: Any) -> None:
    """Replace the request-scoped context; no arguments clears it."""
    _request_context.set(kwargs)


def get_request_context() -> Dict[str, Any]:
    return _request_context.get()


def _record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: getattr(record, k) for k in _EXTRA_FIELDS if hasattr(record, k)}


class JSONFormatter(logging.Formatter):
    """Machine-parseable output for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": record.lineno,
        }

        ctx = get_request_context()
        if ctx:
            entry["context"] = ctx
        entry.update(_record_extras(record))

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(entry, default=str)


class PrettyFormatter(logging.Formatter):
    """
    Coloured single-line format for local development.

        14:02:11 WARNING  [3f9a1c2e] u=user-1 alerts.channels.authority: ... {alert=5d1e2c0a ch=authority}
    """

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
        ts = self.formatTime(record, "%H:%M:%S")

        ctx = get_request_context()
        prefix = ""
        if ctx.get("request_id"):
            prefix += f" [{ctx['request_id'][:8]}]"
        if ctx.get("user_id"):
            prefix += f" u={ctx['user_id']}"

        tags = []
        if getattr(record, "alert_id", None):
            tags.append(f"alert={str(record.alert_id)[:8]}")
        if getattr(record, "channel", None):
            tags.append(f"ch={record.channel}")
        suffix = f" {{{' '.join(tags)}}}" if tags else ""

        name = record.name.removeprefix("backend.app.")
        formatted = (
            f"{color}{ts} {record.levelname:8s}{self.RESET}"
            f"{prefix} {name}: {record.getMessage()}{suffix}"
        )

        if record.exc_info and record.exc_info[1]:
            formatted += f"\n  {type(record.exc_info[1]).__name__}: {record.exc_info[1]}"

        return formatted


def setup_logging(level: Optional[str] = None, *, stream: Optional[TextIO] = None) -> None:
    """
    Configure the root logger from settings.

    Parameters
    ----------
    level : str, optional
        Overrides ``LOG_LEVEL`` (the console demo passes DEBUG for --verbose).
    stream : file-like, optional
        Destination; stdout by default.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter() if settings.is_production else PrettyFormatter())
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
