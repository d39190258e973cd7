"""Logging configuration for settlement-service.

Two output modes, selected by LOG_JSON:

  _ContainerFormatter: one human-readable line per record, for a terminal.
    WARNING and above carry a [file:line] suffix so a rejected payment or
    a swallowed indexing failure can be traced to its guard clause.

  _JsonFormatter: one JSON object per line, for log aggregation.  Request
    context (request_id, method, path, ...) and settlement context
    (reference, payment_id, course_id) become top-level keys, so a single
    payment can be followed across callback, webhook and polling requests:

      reference == "crs_4f0c..." AND level == "WARNING"

Secrets never reach a log line: gateway keys, passwords and one-time
tokens are not passed to the logger anywhere in the codebase.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar

# Set per request by RequestContextMiddleware; "-" outside a request
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"

# Extra fields promoted to top-level JSON keys when a record carries them
CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "user_id",
    "status_code",
    "duration_ms",
    "reference",
    "payment_id",
    "course_id",
)


class _RequestIdFilter(logging.Filter):
    """Stamp the current request ID on records that were not given one.

    Attached to the handler rather than a logger: logger filters only see
    records logged on that exact logger, handler filters see them all.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        return True


def _iso_millis(formatter: logging.Formatter, record: logging.LogRecord) -> str:
    stamp = logging.Formatter.formatTime(formatter, record, _DATEFMT)
    # 2025-01-01T12:00:00+0000 -> 2025-01-01T12:00:00.123+0000
    return f"{stamp[:-5]}.{int(record.msecs):03d}{stamp[-5:]}"


class _ContainerFormatter(logging.Formatter):
    """One line per record; WARNING and above get a [file:line] suffix."""

    _plain = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"

    def __init__(self) -> None:
        super().__init__(self._plain)
        self._located = logging.Formatter(self._plain + "  [%(filename)s:%(lineno)d]")
        self._located.formatTime = self.formatTime  # type: ignore[method-assign]

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return _iso_millis(self, record)

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.WARNING:
            return self._located.format(record)
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return _iso_millis(self, record)

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, value)
            for key in CONTEXT_FIELDS
            if (value := getattr(record, key, None)) not in (None, "-")
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Replace the root handlers with one stdout handler.

    ``level_name`` is debug/info/warning/error; anything else means info.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())
    handler.addFilter(_RequestIdFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # httpx logs every gateway request line at INFO
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error", "httpcore", "httpx"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
