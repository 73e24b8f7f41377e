"""
Pytest configuration and fixtures for the mirror sync tests.
"""

import pytest

from fakes import FakeCollection


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")


@pytest.fixture(autouse=True)
def set_test_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    """Give every test a clean, predictable environment."""
    for key in (
        "DB_URI", "DB_NAME", "SOURCE_COLLECTION", "SINK_COLLECTION",
        "CHECKPOINT_COLLECTION", "BATCH_SIZE", "SAFETY_WINDOW_SECONDS",
        "FEED_MAX_RETRIES", "FEED_RETRY_BASE_DELAY", "METRICS_PORT",
        "OTLP_ENDPOINT", "VAULT_ADDR", "VAULT_TOKEN",
        "LOG_LEVEL", "LOG_FILE", "LOG_JSON", "LOG_CONSOLE",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DB_URI", "mongodb://localhost:27017/test")


@pytest.fixture
def source() -> FakeCollection:
    return FakeCollection("customers")


@pytest.fixture
def sink() -> FakeCollection:
    return FakeCollection("anonymized_customers")


@pytest.fixture
def state_collection() -> FakeCollection:
    return FakeCollection("syncState")
