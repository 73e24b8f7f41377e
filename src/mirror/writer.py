"""
Idempotent batch writer for the sink collection.

Scrubbed documents keep their source ``_id``, so replaying a record that a
previous (possibly crashed) run already wrote fails with a duplicate-key
error. Those errors are the expected outcome of at-least-once delivery
and count as success; anything else is reported.
"""

import logging
import time
from typing import Any

from opentelemetry import trace
from prometheus_client import Counter, Histogram
from pymongo.collection import Collection
from pymongo.errors import BulkWriteError

from utils.metrics import get_or_create_metric
from utils.tracing import trace_operation

from .models import BatchWriteResult

logger = logging.getLogger(__name__)

DUPLICATE_KEY_ERROR = 11000

# Metrics
DOCUMENTS_WRITTEN = get_or_create_metric(
    lambda: Counter(
        "mirror_documents_written_total",
        "Documents offered to the sink, by outcome",
        ["outcome"],  # inserted, duplicate, failed
    ),
    "mirror_documents_written_total",
)

BATCH_WRITE_TIME = get_or_create_metric(
    lambda: Histogram(
        "mirror_batch_write_seconds",
        "Time to bulk insert one batch into the sink",
        buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
    ),
    "mirror_batch_write_seconds",
)


def write_batch(sink: Collection, documents: list[dict[str, Any]]) -> BatchWriteResult:
    """
    Insert documents into the sink, tolerating duplicate identities.

    The insert is unordered, so one bad document does not stop the rest
    of the batch.

    Args:
        sink: Sink collection
        documents: Scrubbed documents

    Returns:
        BatchWriteResult with inserted / duplicate / failed counts

    Raises:
        pymongo.errors.BulkWriteError: If the batch failed at the write
            concern level
        pymongo.errors.PyMongoError: For any other (bulk-level) failure
    """
    if not documents:
        return BatchWriteResult()

    attempted = len(documents)

    with trace_operation(
        "write_batch",
        kind=trace.SpanKind.CLIENT,
        collection=sink.name,
        batch_size=attempted,
    ) as span:
        start = time.perf_counter()
        try:
            sink.insert_many(documents, ordered=False)
            result = BatchWriteResult(attempted=attempted, inserted=attempted)
        except BulkWriteError as e:
            result = _classify_bulk_error(e, documents)
        finally:
            BATCH_WRITE_TIME.observe(time.perf_counter() - start)

        span.set_attribute("duplicates", result.duplicates)
        span.set_attribute("failed", result.failed)

    DOCUMENTS_WRITTEN.labels(outcome="inserted").inc(result.inserted)
    DOCUMENTS_WRITTEN.labels(outcome="duplicate").inc(result.duplicates)
    DOCUMENTS_WRITTEN.labels(outcome="failed").inc(result.failed)

    if result.duplicates:
        logger.debug(
            f"Skipped {result.duplicates} already mirrored document(s) in {sink.name}"
        )

    return result


def _classify_bulk_error(
    error: BulkWriteError,
    documents: list[dict[str, Any]],
) -> BatchWriteResult:
    details = error.details or {}

    if details.get("writeConcernErrors"):
        logger.error(
            f"Write concern error on batch of {len(documents)}: "
            f"{details['writeConcernErrors']}"
        )
        raise error

    write_errors = details.get("writeErrors") or []
    if not write_errors:
        raise error

    duplicates = 0
    failed = 0
    for write_error in write_errors:
        if write_error.get("code") == DUPLICATE_KEY_ERROR:
            duplicates += 1
            continue

        failed += 1
        index = write_error.get("index")
        document_id = (
            documents[index].get("_id")
            if isinstance(index, int) and 0 <= index < len(documents)
            else None
        )
        logger.error(
            f"Error inserting document {document_id}: "
            f"code={write_error.get('code')} {write_error.get('errmsg')}"
        )

    attempted = len(documents)
    inserted = details.get("nInserted", attempted - duplicates - failed)

    return BatchWriteResult(
        attempted=attempted,
        inserted=inserted,
        duplicates=duplicates,
        failed=failed,
    )
