"""
Unit tests for the synthetic customer generator.
"""

import random
from datetime import UTC
from unittest.mock import Mock, patch

import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect

from mirror.generator import (
    ERROR_DELAY,
    INSERT_INTERVAL,
    MAX_BATCH_SIZE,
    MIN_BATCH_SIZE,
    generate_and_insert_customers,
    generate_customer,
    generate_customer_batch,
    main,
)


class TestGenerateCustomer:
    def test_document_shape(self):
        doc = generate_customer(random.Random(7))

        assert isinstance(doc["_id"], ObjectId)
        assert set(doc) == {"_id", "firstName", "lastName", "email", "address", "createdAt"}
        assert set(doc["address"]) == {"line1", "line2", "postcode", "city", "state", "country"}
        assert doc["createdAt"].tzinfo is UTC

    def test_email_built_from_name(self):
        doc = generate_customer(random.Random(7))
        local, _, domain = doc["email"].partition("@")

        assert local.startswith(f"{doc['firstName']}.{doc['lastName']}".lower())
        assert domain

    def test_postcode_is_five_digits(self):
        postcode = generate_customer(random.Random(3))["address"]["postcode"]

        assert len(postcode) == 5
        assert postcode.isdigit()

    def test_batch_size(self):
        batch = generate_customer_batch(4, random.Random(1))

        assert len(batch) == 4
        assert len({doc["_id"] for doc in batch}) == 4


class TestGenerateAndInsertCustomers:
    def test_inserts_batches_of_one_to_ten(self):
        collection = Mock()
        sleep = Mock()

        inserted = generate_and_insert_customers(
            collection, max_batches=5, rng=random.Random(11), sleep=sleep
        )

        sizes = [len(c.args[0]) for c in collection.insert_many.call_args_list]
        assert len(sizes) == 5
        assert all(MIN_BATCH_SIZE <= size <= MAX_BATCH_SIZE for size in sizes)
        assert inserted == sum(sizes)
        assert all(c.args[0] == INSERT_INTERVAL for c in sleep.call_args_list)

    def test_error_waits_and_continues(self):
        collection = Mock()
        collection.insert_many.side_effect = [AutoReconnect("reset"), None]
        sleep = Mock()

        inserted = generate_and_insert_customers(
            collection, max_batches=2, rng=random.Random(5), sleep=sleep
        )

        assert collection.insert_many.call_count == 2
        assert inserted == len(collection.insert_many.call_args_list[1].args[0])
        assert [c.args[0] for c in sleep.call_args_list] == [ERROR_DELAY, INSERT_INTERVAL]

    def test_zero_batches(self):
        collection = Mock()

        assert generate_and_insert_customers(collection, max_batches=0) == 0
        collection.insert_many.assert_not_called()


class TestMain:
    @patch("mirror.generator.shutdown_logging")
    @patch("mirror.generator.configure_from_env")
    def test_missing_uri_exits(self, mock_configure, mock_shutdown, monkeypatch):
        monkeypatch.delenv("DB_URI")

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        mock_shutdown.assert_called_once()

    @patch("mirror.generator.shutdown_logging")
    @patch("mirror.generator.configure_from_env")
    @patch("mirror.generator.generate_and_insert_customers", side_effect=KeyboardInterrupt)
    @patch("mirror.generator.MongoConnection")
    def test_interrupt_is_clean(self, mock_conn_cls, mock_generate, mock_configure, mock_shutdown):
        main()

        conn = mock_conn_cls.return_value.__enter__.return_value
        conn.collection.assert_called_once_with("customers")
        mock_shutdown.assert_called_once()

    @patch("mirror.generator.shutdown_logging")
    @patch("mirror.generator.configure_from_env")
    @patch("mirror.generator.MongoConnection")
    def test_connection_error_exits(self, mock_conn_cls, mock_configure, mock_shutdown):
        mock_conn_cls.return_value.__enter__.side_effect = AutoReconnect("no server")

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
