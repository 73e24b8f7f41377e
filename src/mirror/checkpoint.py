"""
Durable sync checkpoint.

The checkpoint is a single document in the checkpoint collection holding
the creation timestamp of the newest source record known to be reflected
in the sink. Durability is best effort: every operation reports a
CheckpointResult instead of raising, and a lost save only means the next
restart replays a little more.
"""

import logging
from datetime import UTC, datetime

from opentelemetry import trace
from prometheus_client import Counter
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from utils.metrics import get_or_create_metric
from utils.tracing import trace_operation

from .models import CheckpointResult

logger = logging.getLogger(__name__)

CHECKPOINT_KEY = "lastTimestamp"

# Metrics
CHECKPOINT_OPERATIONS = get_or_create_metric(
    lambda: Counter(
        "mirror_checkpoint_operations_total",
        "Checkpoint store operations",
        ["operation", "status"],  # operation: save, load, clear
    ),
    "mirror_checkpoint_operations_total",
)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (BSON dates read without tz_aware) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class CheckpointStore:
    """
    Single-slot timestamp store keyed by a fixed sentinel ``_id``.

    ``save`` only ever moves the stored value forward (``$max``), so
    offering an older timestamp, as a catch-up with no matches or a
    late change event does, is a harmless no-op. ``clear`` is the only
    way to go back.
    """

    def __init__(self, collection: Collection, key: str = CHECKPOINT_KEY):
        """
        Initialize checkpoint store.

        Args:
            collection: Collection holding the checkpoint document
            key: ``_id`` of the checkpoint document
        """
        self.collection = collection
        self.key = key

    def save(self, timestamp: datetime) -> CheckpointResult:
        """
        Record that everything up to ``timestamp`` is in the sink.

        Args:
            timestamp: Creation timestamp of the newest mirrored record

        Returns:
            CheckpointResult; ``ok`` is False if the write failed
        """
        with trace_operation(
            "checkpoint_save",
            kind=trace.SpanKind.CLIENT,
            timestamp=timestamp.isoformat(),
        ):
            try:
                self.collection.update_one(
                    {"_id": self.key},
                    {"$max": {"timestamp": timestamp}},
                    upsert=True,
                )
            except PyMongoError as e:
                CHECKPOINT_OPERATIONS.labels(operation="save", status="error").inc()
                logger.error(f"Error saving last timestamp: {type(e).__name__}: {e}")
                return CheckpointResult.failure(e)

            CHECKPOINT_OPERATIONS.labels(operation="save", status="ok").inc()
            logger.debug(f"Saved last timestamp: {timestamp.isoformat()}")
            return CheckpointResult.success(timestamp)

    def load(self) -> CheckpointResult:
        """
        Read the stored checkpoint.

        Returns:
            CheckpointResult whose ``value`` is the timestamp, or None when
            no checkpoint exists (or the read failed, see ``ok``)
        """
        with trace_operation("checkpoint_load", kind=trace.SpanKind.CLIENT):
            try:
                state = self.collection.find_one({"_id": self.key})
            except PyMongoError as e:
                CHECKPOINT_OPERATIONS.labels(operation="load", status="error").inc()
                logger.error(f"Error getting last timestamp: {type(e).__name__}: {e}")
                return CheckpointResult.failure(e)

            CHECKPOINT_OPERATIONS.labels(operation="load", status="ok").inc()

            timestamp = state.get("timestamp") if state else None
            if timestamp is not None:
                timestamp = ensure_utc(timestamp)

            logger.info(
                f"Loaded last timestamp: {timestamp.isoformat() if timestamp else 'null'}"
            )
            return CheckpointResult.success(timestamp)

    def clear(self) -> CheckpointResult:
        """Delete the checkpoint so the next start is treated as a first run."""
        with trace_operation("checkpoint_clear", kind=trace.SpanKind.CLIENT):
            try:
                self.collection.delete_one({"_id": self.key})
            except PyMongoError as e:
                CHECKPOINT_OPERATIONS.labels(operation="clear", status="error").inc()
                logger.error(f"Error clearing last timestamp: {type(e).__name__}: {e}")
                return CheckpointResult.failure(e)

            CHECKPOINT_OPERATIONS.labels(operation="clear", status="ok").inc()
            logger.info("Cleared last timestamp")
            return CheckpointResult.success()
