"""
Unit tests for change event parsing and result types.
"""

from datetime import UTC, datetime, timedelta

from pymongo.errors import AutoReconnect

from fakes import change_event, make_customer
from mirror.models import (
    BatchWriteResult,
    CheckpointResult,
    CollectionDropEvent,
    DatabaseDropEvent,
    DeleteEvent,
    InsertEvent,
    ScanResult,
    UpdateEvent,
    parse_change_event,
)

T0 = datetime(2024, 3, 1, tzinfo=UTC)


class TestParseChangeEvent:
    """Test conversion of raw change stream documents."""

    def test_insert(self):
        doc = make_customer(1)
        raw = change_event("insert", doc)

        event = parse_change_event(raw)

        assert isinstance(event, InsertEvent)
        assert event.document == doc
        assert event.resume_token == raw["_id"]

    def test_update(self):
        doc = make_customer(1)

        event = parse_change_event(change_event("update", doc))

        assert isinstance(event, UpdateEvent)
        assert event.document == doc

    def test_update_without_post_image(self):
        assert parse_change_event(change_event("update")) is None

    def test_delete(self):
        event = parse_change_event(change_event("delete", documentKey={"_id": "customer-0001"}))

        assert event == DeleteEvent(document_id="customer-0001", resume_token={"_data": "token-delete"})

    def test_collection_drop(self):
        event = parse_change_event(change_event("drop"))

        assert isinstance(event, CollectionDropEvent)
        assert event.collection == "customers"

    def test_database_drop(self):
        event = parse_change_event(change_event("dropDatabase", ns={"db": "test"}))

        assert isinstance(event, DatabaseDropEvent)
        assert event.database == "test"

    def test_unmodelled_operations(self):
        for op in ("invalidate", "replace", "rename"):
            assert parse_change_event(change_event(op)) is None


class TestCheckpointResult:
    def test_success(self):
        result = CheckpointResult.success(T0)

        assert result.ok
        assert result.value == T0
        assert result.error is None

    def test_failure(self):
        result = CheckpointResult.failure(AutoReconnect("reset"))

        assert not result.ok
        assert result.error == "AutoReconnect: reset"


class TestBatchWriteResult:
    def test_ok_ignores_duplicates(self):
        assert BatchWriteResult(attempted=3, inserted=1, duplicates=2).ok

    def test_failed_is_not_ok(self):
        assert not BatchWriteResult(attempted=3, inserted=2, failed=1).ok


class TestScanResult:
    def test_observe_tracks_max(self):
        result = ScanResult()
        for offset in (5, 1, 9, 3):
            result.observe(T0 + timedelta(seconds=offset))

        assert result.scanned == 4
        assert result.max_timestamp == T0 + timedelta(seconds=9)

    def test_observe_without_timestamp(self):
        result = ScanResult()
        result.observe(None)

        assert result.scanned == 1
        assert result.max_timestamp is None

    def test_add_batch(self):
        result = ScanResult()
        result.add_batch(BatchWriteResult(attempted=3, inserted=2, duplicates=1))
        result.add_batch(BatchWriteResult(attempted=2, inserted=1, failed=1))

        assert (result.inserted, result.duplicates, result.failed, result.batches) == (3, 1, 1, 2)
