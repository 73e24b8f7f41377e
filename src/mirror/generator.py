"""
Synthetic customer generator.

Feeds the source collection with random customer records for demos and
manual testing of the sync process. Not part of the sync engine.
"""

import logging
import random
import string
import sys
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from bson import ObjectId
from prometheus_client import Counter
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from utils.db import MongoConnection
from utils.logging import configure_from_env, shutdown_logging
from utils.metrics import get_or_create_metric

from .config import SyncConfig
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 10
INSERT_INTERVAL = 0.2
ERROR_DELAY = 1.0

FIRST_NAMES = [
    "Olivia", "Liam", "Emma", "Noah", "Amelia", "Oliver", "Ava", "Elijah",
    "Sophia", "Lucas", "Mia", "Mateo", "Isla", "Hugo", "Chloe", "Arjun",
]
LAST_NAMES = [
    "Smith", "Johnson", "Nguyen", "Garcia", "Brown", "Kowalski", "Tanaka",
    "Silva", "Müller", "Okafor", "Martin", "Rossi", "Dubois", "Andersson",
]
STREETS = [
    "Main St", "Oak Avenue", "Station Road", "Maple Drive", "High Street",
    "Park Lane", "Elm Street", "Church Road", "River Walk", "Mill Lane",
]
CITIES = [
    ("Springfield", "Illinois", "US"),
    ("Portland", "Oregon", "US"),
    ("Manchester", "England", "GB"),
    ("Toronto", "Ontario", "CA"),
    ("Lyon", "Auvergne-Rhône-Alpes", "FR"),
    ("Munich", "Bavaria", "DE"),
    ("Osaka", "Osaka", "JP"),
    ("Melbourne", "Victoria", "AU"),
]
EMAIL_DOMAINS = ["example.com", "example.org", "mail.test", "inbox.test"]

# Metrics
CUSTOMERS_GENERATED = get_or_create_metric(
    lambda: Counter(
        "mirror_generator_customers_total",
        "Synthetic customers inserted into the source collection",
    ),
    "mirror_generator_customers_total",
)

GENERATOR_ERRORS = get_or_create_metric(
    lambda: Counter(
        "mirror_generator_errors_total",
        "Failed synthetic batch inserts",
        ["error_type"],
    ),
    "mirror_generator_errors_total",
)


def generate_customer(rng: random.Random = random) -> dict[str, Any]:
    """Build one random customer record."""
    first_name = rng.choice(FIRST_NAMES)
    last_name = rng.choice(LAST_NAMES)
    city, state, country = rng.choice(CITIES)
    local_part = f"{first_name}.{last_name}{rng.randint(1, 999)}".lower()

    return {
        "_id": ObjectId(),
        "firstName": first_name,
        "lastName": last_name,
        "email": f"{local_part}@{rng.choice(EMAIL_DOMAINS)}",
        "address": {
            "line1": f"{rng.randint(1, 9999)} {rng.choice(STREETS)}",
            "line2": f"Apt. {rng.randint(1, 999)}",
            "postcode": "".join(rng.choices(string.digits, k=5)),
            "city": city,
            "state": state,
            "country": country,
        },
        "createdAt": datetime.now(UTC),
    }


def generate_customer_batch(size: int, rng: random.Random = random) -> list[dict[str, Any]]:
    return [generate_customer(rng) for _ in range(size)]


def generate_and_insert_customers(
    customers: Collection,
    max_batches: int | None = None,
    rng: random.Random = random,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Insert random batches of customers until interrupted.

    A failed insert is logged and retried after a short pause; the loop
    never gives up on its own.

    Args:
        customers: Source collection
        max_batches: Stop after this many attempts (None runs forever)
        rng: Random source
        sleep: Sleep function (injectable for tests)

    Returns:
        Number of customers inserted
    """
    inserted = 0
    attempts = 0

    while max_batches is None or attempts < max_batches:
        attempts += 1
        batch = generate_customer_batch(rng.randint(MIN_BATCH_SIZE, MAX_BATCH_SIZE), rng)
        try:
            customers.insert_many(batch)
        except PyMongoError as e:
            GENERATOR_ERRORS.labels(error_type=type(e).__name__).inc()
            logger.error(f"Error generating and inserting customers: {type(e).__name__}: {e}")
            sleep(ERROR_DELAY)
            continue

        inserted += len(batch)
        CUSTOMERS_GENERATED.inc(len(batch))
        logger.debug(f"Inserted {len(batch)} customers")
        sleep(INSERT_INTERVAL)

    return inserted


def main() -> None:
    """Entry point for ``mirror-generate``."""
    configure_from_env()

    try:
        config = SyncConfig.from_env()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        shutdown_logging()
        sys.exit(1)

    try:
        with MongoConnection(config.db_uri, database=config.db_name) as conn:
            logger.info(f"Generating customers into '{config.source_collection}'")
            generate_and_insert_customers(conn.collection(config.source_collection))
    except KeyboardInterrupt:
        logger.info("Generator interrupted")
    except PyMongoError as e:
        logger.error(f"Error in generator: {type(e).__name__}: {e}")
        sys.exit(1)
    finally:
        shutdown_logging()


if __name__ == "__main__":
    main()
