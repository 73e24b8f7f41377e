"""
Change feed subscriber.

Tails the source collection's change stream and applies every insert or
update to the sink as it happens: anonymize, single-document batch write,
checkpoint. Each event is checkpointed on its own so a crash replays at
most the events after the last save (plus the safety window).

Deletes and drops are logged and otherwise ignored; the sink is an
append/upsert mirror, not a replica.

When the stream fails or ends, the subscriber reconnects with exponential
backoff. The new stream resumes after the last event seen on the old one.
Without a usable resume token it opens at the cluster time read just
before the optional ``on_reconnect`` hook (normally a catch-up scan from
the last checkpoint minus the safety window) runs, so writes made while
the stream was down or during the catch-up are not lost.
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, assert_never

from opentelemetry import trace
from prometheus_client import Counter
from pymongo.collection import Collection
from pymongo.errors import OperationFailure, PyMongoError

from anonymization import anonymize_customer
from utils.logging import ContextLogger
from utils.metrics import get_or_create_metric
from utils.retry import calculate_backoff_delay
from utils.tracing import trace_operation

from .checkpoint import CheckpointStore, ensure_utc
from .errors import ChangeFeedError
from .models import (
    NON_DATA_OPERATIONS,
    ChangeEvent,
    CollectionDropEvent,
    DatabaseDropEvent,
    DeleteEvent,
    InsertEvent,
    OperationType,
    UpdateEvent,
    parse_change_event,
)
from .writer import write_batch

logger = logging.getLogger(__name__)

# Metrics
CHANGE_EVENTS = get_or_create_metric(
    lambda: Counter(
        "mirror_change_events_total",
        "Change events received by the subscriber",
        ["operation"],
    ),
    "mirror_change_events_total",
)

FEED_RECONNECTS = get_or_create_metric(
    lambda: Counter(
        "mirror_change_feed_reconnects_total",
        "Change feed reconnect attempts",
        ["reason"],  # error, ended
    ),
    "mirror_change_feed_reconnects_total",
)

# ChangeStreamFatalError, ChangeStreamHistoryLost: the resume token is unusable
RESUME_FATAL_CODES = (280, 286)


def build_pipeline(since: datetime) -> list[dict[str, Any]]:
    """
    Server-side filter for the change stream.

    Insert/update events must carry a post-image created at or after
    ``since``. Delete and drop events have no post-image and are let
    through so they can be logged.
    """
    return [
        {
            "$match": {
                "operationType": {"$in": [op.value for op in OperationType]},
            }
        },
        {
            "$match": {
                "$or": [
                    {"fullDocument.createdAt": {"$gte": since}},
                    {"operationType": {"$in": [op.value for op in NON_DATA_OPERATIONS]}},
                ]
            }
        },
    ]


class ChangeFeedSubscriber:
    """
    Serial consumer of the source change stream.

    Events are applied one at a time in delivery order.
    """

    def __init__(
        self,
        source: Collection,
        sink: Collection,
        checkpoints: CheckpointStore,
        anonymize: Callable[[dict[str, Any]], dict[str, Any]] = anonymize_customer,
        max_retries: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        safety_window: timedelta = timedelta(seconds=120),
        on_reconnect: Callable[[datetime], Any] | None = None,
        cluster_time: Callable[[], Any] | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        """
        Args:
            source: Collection whose change stream is tailed
            sink: Collection receiving scrubbed records
            checkpoints: Checkpoint store updated after every applied event
            anonymize: Record anonymizer
            max_retries: Consecutive reconnects allowed without progress
                (0 stops at the first feed error)
            base_delay: Initial reconnect delay in seconds
            max_delay: Reconnect delay cap in seconds
            safety_window: Look-back applied to the checkpoint on reconnect
            on_reconnect: Called with the re-seed point before reopening
            cluster_time: Returns the server's current operation time; read
                before ``on_reconnect`` when there is no resume token
            sleep: Sleep function (default: time.sleep)
        """
        self.source = source
        self.sink = sink
        self.checkpoints = checkpoints
        self.anonymize = anonymize
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.safety_window = safety_window
        self.on_reconnect = on_reconnect
        self.cluster_time = cluster_time
        self.sleep = sleep or time.sleep

        self.last_timestamp: datetime | None = None
        self.resume_token: Any = None
        self._running = False
        self._applied = 0
        self.log = ContextLogger(__name__, collection=source.name, mode="realtime")

    def stop(self) -> None:
        """Ask the subscriber to return after the current event."""
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self, since: datetime, start_at_operation_time: Any = None) -> None:
        """
        Tail the change feed until stopped or out of reconnect attempts.

        Args:
            since: Only insert/update events for records created at or
                after this point are applied
            start_at_operation_time: Cluster time to open the first stream
                at, so events written during a preceding scan are not missed

        Raises:
            ChangeFeedError: If the feed keeps failing after max_retries
                reconnects without processing an event
        """
        self._running = True
        self.resume_token = None
        seed = since
        attempt = 0

        try:
            while self._running:
                error: PyMongoError | None = None
                self._applied = 0
                try:
                    self._consume(seed, start_at_operation_time)
                except PyMongoError as e:
                    error = e
                    if isinstance(e, OperationFailure) and e.code in RESUME_FATAL_CODES:
                        self.resume_token = None
                    self.log.error(f"Error in change stream: {type(e).__name__}: {e}")

                if not self._running:
                    break

                if self._applied:
                    attempt = 0

                if attempt >= self.max_retries:
                    if error is not None:
                        raise ChangeFeedError(
                            f"Change stream failed after {attempt} reconnect attempt(s)"
                        ) from error
                    self.log.warning("Change stream ended; not reconnecting")
                    break

                FEED_RECONNECTS.labels(reason="error" if error else "ended").inc()
                delay = calculate_backoff_delay(
                    attempt, base_delay=self.base_delay, max_delay=self.max_delay
                )
                attempt += 1
                seed = self._reseed_point(since)
                self.log.warning(
                    f"Reconnecting change stream in {delay:.2f}s "
                    f"(attempt {attempt}/{self.max_retries}) from {seed.isoformat()}"
                )
                self.sleep(delay)

                # read before the catch-up so nothing written during it is missed
                start_at_operation_time = None
                if self.resume_token is None and self.cluster_time is not None and self._running:
                    start_at_operation_time = self.cluster_time()

                if self.on_reconnect is not None and self._running:
                    try:
                        self.on_reconnect(seed)
                    except PyMongoError as e:
                        # stream is reopened regardless; a later reconnect repeats the catch-up
                        self.log.error(f"Reconnect catch-up failed: {type(e).__name__}: {e}")
        finally:
            self._running = False

    def _reseed_point(self, since: datetime) -> datetime:
        newest = self.last_timestamp
        if newest is None:
            # nothing applied yet; fall back to what the scans recorded
            newest = self.checkpoints.load().value
        if newest is None:
            return since
        return max(since, newest - self.safety_window)

    def _consume(self, since: datetime, start_at_operation_time: Any = None) -> None:
        """Open one stream and apply events until it ends or the subscriber stops."""
        options: dict[str, Any] = {"full_document": "updateLookup"}
        if self.resume_token is not None:
            options["resume_after"] = self.resume_token
        elif start_at_operation_time is not None:
            options["start_at_operation_time"] = start_at_operation_time

        with self.source.watch(build_pipeline(since), **options) as stream:
            self.log.info(f"Realtime sync started from {since.isoformat()}")

            while self._running and stream.alive:
                raw = stream.try_next()
                if raw is None:
                    continue

                operation = raw.get("operationType")
                CHANGE_EVENTS.labels(operation=str(operation)).inc()
                event = parse_change_event(raw)
                if event is None:
                    self._log_skipped(raw)
                else:
                    self.handle_event(event)
                    self._applied += 1

                if operation == "invalidate":
                    # a stream cannot be resumed after its invalidate event
                    self.resume_token = None
                else:
                    self.resume_token = event.resume_token if event is not None else raw.get("_id")

        self.log.info("Change stream closed")

    def _log_skipped(self, raw: dict[str, Any]) -> None:
        operation = raw.get("operationType")
        if operation in (OperationType.INSERT.value, OperationType.UPDATE.value):
            document_id = (raw.get("documentKey") or {}).get("_id")
            self.log.warning(
                f"No post-image for {operation} of document {document_id}; skipped"
            )
        else:
            self.log.info(f"Unhandled change event type: {operation}")

    def handle_event(self, event: ChangeEvent) -> None:
        """Apply one change event to the sink."""
        if isinstance(event, (InsertEvent, UpdateEvent)):
            self._apply_document(event.document)
        elif isinstance(event, DeleteEvent):
            self.log.info(
                f"Ignoring delete of document {event.document_id}; deletions are not mirrored"
            )
        elif isinstance(event, CollectionDropEvent):
            self.log.warning(f"Source collection {event.collection} was dropped; sink left as is")
        elif isinstance(event, DatabaseDropEvent):
            self.log.warning(f"Source database {event.database} was dropped; sink left as is")
        else:
            assert_never(event)

    def _apply_document(self, document: dict[str, Any]) -> None:
        with trace_operation(
            "apply_change",
            kind=trace.SpanKind.CONSUMER,
            document_id=document.get("_id"),
        ):
            write_batch(self.sink, [self.anonymize(document)])

            created_at = document.get("createdAt")
            if created_at is None:
                self.log.warning(f"Document {document.get('_id')} has no createdAt; not checkpointed")
                return

            created_at = ensure_utc(created_at)
            self.checkpoints.save(created_at)
            if self.last_timestamp is None or created_at > self.last_timestamp:
                self.last_timestamp = created_at
