"""
Sync process configuration.

Everything is read from environment variables; ``--full-reindex`` is the
only command-line flag.
"""

import logging
import os
from dataclasses import dataclass
from datetime import timedelta

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000
DEFAULT_SAFETY_WINDOW_SECONDS = 120


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class SyncConfig:
    """Settings for one sync process."""

    db_uri: str
    db_name: str | None = None
    source_collection: str = "customers"
    sink_collection: str = "anonymized_customers"
    checkpoint_collection: str = "syncState"
    batch_size: int = DEFAULT_BATCH_SIZE
    safety_window_seconds: int = DEFAULT_SAFETY_WINDOW_SECONDS
    feed_max_retries: int = 5
    feed_retry_base_delay: float = 1.0
    metrics_port: int = 0

    def __post_init__(self):
        if not self.db_uri:
            raise ConfigurationError("DB_URI is not defined in the environment variables")
        if self.batch_size < 1:
            raise ConfigurationError("BATCH_SIZE must be at least 1")
        if self.safety_window_seconds < 0:
            raise ConfigurationError("SAFETY_WINDOW_SECONDS must not be negative")
        if self.feed_max_retries < 0:
            raise ConfigurationError("FEED_MAX_RETRIES must not be negative")

    @property
    def safety_window(self) -> timedelta:
        return timedelta(seconds=self.safety_window_seconds)

    @classmethod
    def from_env(cls, db_uri: str | None = None) -> "SyncConfig":
        """
        Build the configuration from the environment.

        Args:
            db_uri: Connection string resolved by the caller (e.g. from
                Vault); defaults to ``DB_URI``

        Raises:
            ConfigurationError: If DB_URI is missing or a value is malformed
        """
        return cls(
            db_uri=db_uri or os.getenv("DB_URI", ""),
            db_name=os.getenv("DB_NAME") or None,
            source_collection=os.getenv("SOURCE_COLLECTION", "customers"),
            sink_collection=os.getenv("SINK_COLLECTION", "anonymized_customers"),
            checkpoint_collection=os.getenv("CHECKPOINT_COLLECTION", "syncState"),
            batch_size=_int_env("BATCH_SIZE", DEFAULT_BATCH_SIZE),
            safety_window_seconds=_int_env(
                "SAFETY_WINDOW_SECONDS", DEFAULT_SAFETY_WINDOW_SECONDS
            ),
            feed_max_retries=_int_env("FEED_MAX_RETRIES", 5),
            feed_retry_base_delay=_float_env("FEED_RETRY_BASE_DELAY", 1.0),
            metrics_port=_int_env("METRICS_PORT", 0),
        )
