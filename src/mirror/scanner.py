"""
Bulk scanners: full sync and catch-up.

Both stream source documents, anonymize them, and flush fixed-size
batches to the sink through the batch writer. They differ in what they
read and how they checkpoint:

- Full sync reads every document in storage order. Storage order is not
  creation order, so the checkpoint is written once, after the last
  batch, as the maximum ``createdAt`` seen.
- Catch-up reads ``createdAt >= since`` sorted by ``createdAt``, so the
  checkpoint can safely advance after every batch.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from opentelemetry import trace
from prometheus_client import Counter, Histogram
from pymongo import ASCENDING
from pymongo.collection import Collection

from anonymization import anonymize_customer
from utils.logging import ContextLogger
from utils.metrics import get_or_create_metric
from utils.tracing import add_span_event, trace_operation

from .checkpoint import CheckpointStore, ensure_utc
from .config import DEFAULT_BATCH_SIZE
from .models import ScanResult
from .writer import write_batch

logger = logging.getLogger(__name__)

Anonymizer = Callable[[dict[str, Any]], dict[str, Any]]

# Metrics
DOCUMENTS_SCANNED = get_or_create_metric(
    lambda: Counter(
        "mirror_documents_scanned_total",
        "Source documents read by the bulk scanners",
        ["mode"],  # full_sync, catch_up
    ),
    "mirror_documents_scanned_total",
)

SCAN_TIME = get_or_create_metric(
    lambda: Histogram(
        "mirror_scan_seconds",
        "Duration of a full sync or catch-up scan",
        ["mode"],
        buckets=[1, 5, 15, 30, 60, 300, 900, 1800, 3600],
    ),
    "mirror_scan_seconds",
)


class CollectionScanner:
    """
    Shared batching loop of the bulk scanners.

    Subclasses choose the cursor and whether each flushed batch also
    moves the checkpoint.
    """

    mode = "scan"
    checkpoint_each_batch = False

    def __init__(
        self,
        source: Collection,
        sink: Collection,
        checkpoints: CheckpointStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        anonymize: Anonymizer = anonymize_customer,
    ):
        """
        Args:
            source: Collection to read raw records from
            sink: Collection receiving scrubbed records
            checkpoints: Checkpoint store updated by the scan
            batch_size: Documents per bulk insert
            anonymize: Record anonymizer
        """
        self.source = source
        self.sink = sink
        self.checkpoints = checkpoints
        self.batch_size = batch_size
        self.anonymize = anonymize
        self.log = ContextLogger(__name__, collection=source.name, mode=self.mode)

    def _scan(self, cursor: Iterable[dict[str, Any]]) -> ScanResult:
        result = ScanResult()
        batch: list[dict[str, Any]] = []

        for document in cursor:
            created_at = document.get("createdAt")
            result.observe(ensure_utc(created_at) if created_at is not None else None)
            batch.append(self.anonymize(document))

            if len(batch) >= self.batch_size:
                self._flush(batch, result)
                batch = []

        if batch:
            self._flush(batch, result)

        DOCUMENTS_SCANNED.labels(mode=self.mode).inc(result.scanned)
        return result

    def _flush(self, batch: list[dict[str, Any]], result: ScanResult) -> None:
        result.add_batch(write_batch(self.sink, batch))
        add_span_event("batch_flushed", size=len(batch), batches=result.batches)
        self.log.debug("Batch flushed", batch_size=len(batch), scanned=result.scanned)

        if self.checkpoint_each_batch and result.max_timestamp is not None:
            self.checkpoints.save(result.max_timestamp)


class FullSyncScanner(CollectionScanner):
    """Copy the whole source collection into the sink."""

    mode = "full_sync"

    def run(self) -> ScanResult:
        """
        Clear the checkpoint, mirror every source document, then save the
        newest ``createdAt`` seen.

        On success the checkpoint is >= the creation time of every
        document present when the scan started. An empty source leaves
        no checkpoint behind.
        """
        with trace_operation(
            "full_sync",
            kind=trace.SpanKind.INTERNAL,
            collection=self.source.name,
        ) as span, SCAN_TIME.labels(mode=self.mode).time():
            self.checkpoints.clear()
            self.log.info("Full sync started")

            with self.source.find() as cursor:
                result = self._scan(cursor)

            if result.max_timestamp is not None:
                self.checkpoints.save(result.max_timestamp)

            span.set_attribute("documents_scanned", result.scanned)

        self.log.info(
            "Full sync completed",
            scanned=result.scanned,
            inserted=result.inserted,
            duplicates=result.duplicates,
            failed=result.failed,
        )
        return result


class CatchUpScanner(CollectionScanner):
    """Mirror documents created at or after a resume point."""

    mode = "catch_up"
    checkpoint_each_batch = True

    def run(self, since: datetime) -> ScanResult:
        """
        Mirror documents with ``createdAt >= since`` in creation order.

        The existing checkpoint is kept. The final save offers the newest
        ``createdAt`` seen, or ``since`` when nothing matched.

        Args:
            since: Resume point (checkpoint minus the safety window)
        """
        with trace_operation(
            "catch_up",
            kind=trace.SpanKind.INTERNAL,
            collection=self.source.name,
            since=since.isoformat(),
        ) as span, SCAN_TIME.labels(mode=self.mode).time():
            self.log.info(f"Catch-up started from {since.isoformat()}")

            query = {"createdAt": {"$gte": since}}
            with self.source.find(query).sort("createdAt", ASCENDING) as cursor:
                result = self._scan(cursor)

            self.checkpoints.save(result.max_timestamp or since)

            span.set_attribute("documents_scanned", result.scanned)

        self.log.info(
            "Catch-up completed",
            scanned=result.scanned,
            inserted=result.inserted,
            duplicates=result.duplicates,
            failed=result.failed,
        )
        return result
