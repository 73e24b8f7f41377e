"""
Structured logging configuration for the anonymized mirror

Provides JSON-formatted logging with contextual information and
integration with monitoring systems.

Usage:
    from utils.logging import configure_from_env, get_logger

    # Setup logging (call once at application startup)
    configure_from_env()

    # Get logger for your module
    logger = get_logger(__name__)

    # Log with context (never personal field values)
    logger.info("Batch flushed", extra={
        "collection": "anonymized_customers",
        "batch_size": 1000,
    })
"""

from .config import configure_from_env, get_logger, setup_logging, shutdown_logging
from .formatters import ConsoleFormatter, JSONFormatter
from .handlers import ContextLogger

__all__ = [
    "setup_logging",
    "get_logger",
    "configure_from_env",
    "shutdown_logging",
    "JSONFormatter",
    "ConsoleFormatter",
    "ContextLogger",
]
