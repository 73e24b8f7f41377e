"""
Log formatters.

Both formatters append the ``extra={...}`` context of a record. Context
keys naming a personal customer field are redacted, so a careless
``logger.info(..., extra={"email": ...})`` never writes raw PII to the
operational log.

JSON records also carry the current OpenTelemetry trace and span ids,
so a log line can be matched with the scan or change event that
produced it.
"""

import json
import logging
import socket
import sys
import traceback
from datetime import UTC, datetime
from typing import Any

from opentelemetry import trace

# Attributes every LogRecord has; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

REDACTED_KEYS = frozenset({
    "firstName", "lastName", "email", "line1", "line2", "postcode",
    "fullDocument",
})

REDACTED = "[REDACTED]"


def extract_context(record: logging.LogRecord) -> dict[str, Any]:
    """Extra context attached to a record, personal fields redacted."""
    return {
        key: REDACTED if key in REDACTED_KEYS else value
        for key, value in vars(record).items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


def trace_ids() -> dict[str, str]:
    """Hex trace/span ids of the current span, or {} outside a recorded span."""
    span_context = trace.get_current_span().get_span_context()
    if not span_context.is_valid:
        return {}
    return {
        "trace_id": format(span_context.trace_id, "032x"),
        "span_id": format(span_context.span_id, "016x"),
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line; non-serializable context values are stringified."""

    def __init__(
        self,
        include_timestamp: bool = True,
        include_hostname: bool = True,
        app_name: str = "pii-mirror-sync",
    ):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.app_name = app_name
        self.hostname = socket.gethostname() if include_hostname else None

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {}
        if self.include_timestamp:
            entry["timestamp"] = datetime.fromtimestamp(record.created, UTC).isoformat()

        entry.update(
            level=record.levelname,
            logger=record.name,
            message=record.getMessage(),
            app=self.app_name,
            source={"file": record.pathname, "line": record.lineno, "function": record.funcName},
            pid=record.process,
        )
        if self.hostname:
            entry["hostname"] = self.hostname

        entry.update(trace_ids())

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": traceback.format_exception(exc_type, exc_value, exc_tb),
            }

        context = extract_context(record)
        if context:
            entry["context"] = context

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    ``2024-03-01 12:00:00 [INFO] mirror.scanner: message [key=value, ...]``

    The level name is colored when stderr is a terminal.
    """

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        context = extract_context(record)

        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        if color:
            # other handlers share the record
            record = logging.makeLogRecord(vars(record))
            record.levelname = f"{color}{record.levelname}{self.RESET}"

        line = super().format(record)
        if context:
            line += " [" + ", ".join(f"{key}={value}" for key, value in context.items()) + "]"
        return line
