"""
Unit tests for the full sync and catch-up scanners.
"""

from datetime import timedelta
from unittest.mock import Mock

import pytest
from pymongo.errors import AutoReconnect

from anonymization import anonymize_customer
from fakes import BASE_TIME, FakeCollection, make_customer
from mirror.checkpoint import CheckpointStore
from mirror.scanner import CatchUpScanner, FullSyncScanner


class ScannerTestBase:
    def setup_method(self):
        self.source = FakeCollection("customers")
        self.sink = FakeCollection("anonymized_customers")
        self.state = FakeCollection("syncState")
        self.checkpoints = CheckpointStore(self.state)

    def add_customers(self, indexes):
        for i in indexes:
            doc = make_customer(i)
            self.source.documents[doc["_id"]] = doc


class TestFullSyncScanner(ScannerTestBase):
    """Test FullSyncScanner."""

    def test_copies_every_document_anonymized(self):
        self.add_customers(range(25))

        result = FullSyncScanner(self.source, self.sink, self.checkpoints, batch_size=10).run()

        assert result.scanned == 25
        assert result.inserted == 25
        assert result.batches == 3
        assert self.sink.ids() == self.source.ids()
        for _id, doc in self.sink.documents.items():
            assert doc == anonymize_customer(self.source.documents[_id])

    def test_checkpoint_is_max_created_at(self):
        self.add_customers([3, 1, 7, 2])

        FullSyncScanner(self.source, self.sink, self.checkpoints).run()

        assert self.checkpoints.load().value == BASE_TIME + timedelta(seconds=7)

    def test_checkpoint_independent_of_storage_order(self):
        """Storage order is not creation order; the newest record still wins."""
        newest = make_customer(1, created_at=BASE_TIME + timedelta(hours=1))
        oldest = make_customer(2, created_at=BASE_TIME)
        self.source.documents = {newest["_id"]: newest, oldest["_id"]: oldest}

        FullSyncScanner(self.source, self.sink, self.checkpoints, batch_size=1).run()

        assert self.checkpoints.load().value == BASE_TIME + timedelta(hours=1)

    def test_clears_existing_checkpoint_first(self):
        self.checkpoints.save(BASE_TIME + timedelta(days=30))
        self.add_customers([1])

        FullSyncScanner(self.source, self.sink, self.checkpoints).run()

        assert self.checkpoints.load().value == BASE_TIME + timedelta(seconds=1)

    def test_empty_source_leaves_no_checkpoint(self):
        self.checkpoints.save(BASE_TIME)

        result = FullSyncScanner(self.source, self.sink, self.checkpoints).run()

        assert result.scanned == 0
        assert result.batches == 0
        assert self.checkpoints.load().value is None

    def test_rerun_is_idempotent(self):
        self.add_customers(range(5))
        FullSyncScanner(self.source, self.sink, self.checkpoints).run()

        result = FullSyncScanner(self.source, self.sink, self.checkpoints).run()

        assert result.duplicates == 5
        assert result.inserted == 0
        assert len(self.sink.documents) == 5

    def test_exact_batch_multiple(self):
        self.add_customers(range(20))

        result = FullSyncScanner(self.source, self.sink, self.checkpoints, batch_size=10).run()

        assert result.batches == 2

    def test_failed_documents_do_not_block_checkpoint(self):
        self.add_customers(range(3))
        self.sink.reject_ids = {make_customer(1)["_id"]}

        result = FullSyncScanner(self.source, self.sink, self.checkpoints).run()

        assert result.failed == 1
        assert self.checkpoints.load().value == BASE_TIME + timedelta(seconds=2)

    def test_write_error_aborts_without_checkpoint(self):
        self.add_customers(range(3))
        sink = Mock()
        sink.name = "anonymized_customers"
        sink.insert_many.side_effect = AutoReconnect("connection reset")

        with pytest.raises(AutoReconnect):
            FullSyncScanner(self.source, sink, self.checkpoints).run()

        assert self.checkpoints.load().value is None

    def test_custom_anonymizer(self):
        self.add_customers([1])
        anonymize = Mock(side_effect=lambda doc: {**doc, "firstName": "X"})

        FullSyncScanner(self.source, self.sink, self.checkpoints, anonymize=anonymize).run()

        anonymize.assert_called_once()
        assert self.sink.documents[make_customer(1)["_id"]]["firstName"] == "X"


class TestCatchUpScanner(ScannerTestBase):
    """Test CatchUpScanner."""

    def test_only_documents_at_or_after_since(self):
        self.add_customers(range(10))
        since = BASE_TIME + timedelta(seconds=5)

        result = CatchUpScanner(self.source, self.sink, self.checkpoints).run(since)

        assert result.scanned == 5
        assert self.sink.ids() == {make_customer(i)["_id"] for i in range(5, 10)}

    def test_boundary_is_inclusive(self):
        self.add_customers([5])

        result = CatchUpScanner(self.source, self.sink, self.checkpoints).run(
            BASE_TIME + timedelta(seconds=5)
        )

        assert result.scanned == 1

    def test_checkpoint_advances_per_batch(self):
        self.add_customers(range(6))
        saves = []
        original_save = self.checkpoints.save

        def recording_save(ts):
            saves.append(ts)
            return original_save(ts)

        self.checkpoints.save = recording_save

        CatchUpScanner(self.source, self.sink, self.checkpoints, batch_size=2).run(BASE_TIME)

        assert saves[:3] == [
            BASE_TIME + timedelta(seconds=1),
            BASE_TIME + timedelta(seconds=3),
            BASE_TIME + timedelta(seconds=5),
        ]
        assert saves == sorted(saves)

    def test_processes_in_creation_order(self):
        late = make_customer(1, created_at=BASE_TIME + timedelta(minutes=2))
        early = make_customer(2, created_at=BASE_TIME + timedelta(minutes=1))
        self.source.documents = {late["_id"]: late, early["_id"]: early}
        seen = []

        def anonymize(doc):
            seen.append(doc["_id"])
            return anonymize_customer(doc)

        CatchUpScanner(self.source, self.sink, self.checkpoints, anonymize=anonymize).run(BASE_TIME)

        assert seen == [early["_id"], late["_id"]]

    def test_no_matches_saves_since(self):
        since = BASE_TIME + timedelta(hours=1)

        result = CatchUpScanner(self.source, self.sink, self.checkpoints).run(since)

        assert result.scanned == 0
        assert self.checkpoints.load().value == since

    def test_no_matches_keeps_newer_checkpoint(self):
        newer = BASE_TIME + timedelta(hours=2)
        self.checkpoints.save(newer)

        CatchUpScanner(self.source, self.sink, self.checkpoints).run(newer - timedelta(seconds=120))

        assert self.checkpoints.load().value == newer

    def test_does_not_clear_checkpoint(self):
        self.checkpoints.save(BASE_TIME + timedelta(seconds=8))
        self.add_customers([9])

        CatchUpScanner(self.source, self.sink, self.checkpoints).run(BASE_TIME)

        assert self.checkpoints.load().value == BASE_TIME + timedelta(seconds=9)

    def test_safety_window_replay_is_harmless(self):
        self.add_customers(range(10))
        FullSyncScanner(self.source, self.sink, self.checkpoints).run()

        result = CatchUpScanner(self.source, self.sink, self.checkpoints).run(
            BASE_TIME + timedelta(seconds=9) - timedelta(seconds=120)
        )

        assert result.duplicates == 10
        assert len(self.sink.documents) == 10
