"""Logging configuration for analytics-service.

One dashboard page load fires several analytics requests at once, so
their log lines interleave.  Every line therefore carries the request ID
of the call that produced it (``-`` outside a request):

  text (LOG_JSON=false):
    2024-03-01T09:00:00.123+0000 INFO     app.services.analytics_service [7f3c…]  Aggregated …

  JSON lines (LOG_JSON=true): request_id, method, path, status_code and
  duration_ms become top-level keys, so a slow view is a field query
  (path == "/api/analytics/learning/global" AND duration_ms > 1000)
  rather than a regex.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar

# Set per request by RequestContextMiddleware; each asyncio task sees its own value.
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

_QUIET_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "httpcore",
    "httpx",
    "sqlalchemy.engine",
)


class RequestIdFilter(logging.Filter):
    """Stamp the current request ID onto every record the handler emits."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        return True


class _ContainerFormatter(logging.Formatter):
    """Single-line text; WARNING and above get a ``[file:line]`` suffix."""

    _FMT = "%(asctime)s %(levelname)-8s %(name)s [%(request_id)s]  %(message)s"
    _LOC_SUFFIX = "  [%(filename)s:%(lineno)d]"

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        # Milliseconds go before the +0000 offset.
        return f"{base[:-5]}.{int(record.msecs):03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "request_id"):
            record.request_id = "-"  # type: ignore[attr-defined]
        with_location = record.levelno >= logging.WARNING
        self._style._fmt = self._FMT + self._LOC_SUFFIX if with_location else self._FMT
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    _CONTEXT_FIELDS = ("request_id", "method", "path", "status_code", "duration_ms")

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key))
            for key in self._CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Route all logging to stdout at ``level_name`` (unknown names → INFO)."""
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # SQL echo is the engine's job (dev only), not LOG_LEVEL's.
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
