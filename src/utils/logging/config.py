"""
Process-wide logging setup for the sync process and the generator.

Both entry points call ``configure_from_env`` once at start-up and
``shutdown_logging`` on the way out.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

from .formatters import ConsoleFormatter, JSONFormatter

APP_NAME = "pii-mirror-sync"

DEFAULT_MAX_BYTES = 100 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5

# Chatty at INFO; capped at WARNING
_NOISY_LOGGERS = ("pymongo", "urllib3", "requests", "opentelemetry")


def _formatter(json_format: bool, app_name: str, use_colors: bool) -> logging.Formatter:
    if json_format:
        return JSONFormatter(app_name=app_name)
    return ConsoleFormatter(use_colors=use_colors)


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    console_output: bool = True,
    json_format: bool = False,
    app_name: str = APP_NAME,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> None:
    """
    Replace the root logger's handlers.

    Args:
        level: Level name; unknown names fall back to INFO
        log_file: Rotating log file path (None disables file logging)
        console_output: Log to stderr
        json_format: One JSON object per line instead of text
        app_name: ``app`` field of JSON records
        max_bytes: Size at which the log file rotates
        backup_count: Rotated files kept
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    handlers: list[logging.Handler] = []

    if console_output:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(_formatter(json_format, app_name, use_colors=True))
        handlers.append(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        rotating.setFormatter(_formatter(json_format, app_name, use_colors=False))
        handlers.append(rotating)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(numeric_level)
    for handler in handlers:
        handler.setLevel(numeric_level)
        root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging initialized: level={logging.getLevelName(numeric_level)}, "
        f"file={log_file or 'none'}, console={console_output}, json={json_format}"
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def shutdown_logging() -> None:
    """Detach and close the root handlers, then flush the logging module."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    logging.shutdown()


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.lower() in ("true", "1", "yes")


def configure_from_env() -> None:
    """
    Configure logging from the environment.

    Environment variables:
        LOG_LEVEL: Level name (default: INFO)
        LOG_FILE: Rotating log file path (default: none)
        LOG_JSON: JSON lines instead of text (default: false)
        LOG_CONSOLE: Log to stderr (default: true)
    """
    setup_logging(
        level=os.getenv("LOG_LEVEL", "INFO"),
        log_file=os.getenv("LOG_FILE") or None,
        console_output=_env_flag("LOG_CONSOLE", True),
        json_format=_env_flag("LOG_JSON", False),
    )
