"""
MongoDB connection handle.

One ``MongoConnection`` is constructed at process start, opened once and
passed to every component that needs a collection. pymongo's
``MongoClient`` already pools sockets internally, so the handle only owns
the client's lifecycle, the initial health check, and collection lookup.
"""

import logging
from typing import Any

from opentelemetry import trace
from prometheus_client import Counter, Gauge
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from utils.metrics import get_or_create_metric
from utils.retry import retry_database_operation
from utils.tracing import trace_operation

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "test"

# Metrics
DB_CONNECTED = get_or_create_metric(
    lambda: Gauge(
        "mirror_db_connected",
        "Whether the MongoDB connection handle is open (1) or closed (0)",
    ),
    "mirror_db_connected",
)

DB_CONNECTION_ERRORS = get_or_create_metric(
    lambda: Counter(
        "mirror_db_connection_errors_total",
        "MongoDB connection handle errors",
        ["operation", "error_type"],
    ),
    "mirror_db_connection_errors_total",
)


class ConnectionNotOpenError(RuntimeError):
    """Raised when a collection is requested before connect() or after close()."""


class MongoConnection:
    """
    Owned MongoDB connection handle.

    Usage:
        with MongoConnection(uri) as conn:
            customers = conn.collection("customers")
    """

    def __init__(
        self,
        uri: str,
        database: str | None = None,
        app_name: str = "pii-mirror-sync",
        server_selection_timeout_ms: int = 10000,
        **client_kwargs: Any,
    ):
        """
        Initialize the handle without connecting.

        Args:
            uri: MongoDB connection string
            database: Database name (default: the URI's default database)
            app_name: Application name reported to the server
            server_selection_timeout_ms: Server selection timeout
            **client_kwargs: Extra keyword arguments for MongoClient
        """
        self.uri = uri
        self.database_name = database
        self.app_name = app_name
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self.client_kwargs = client_kwargs

        self._client: MongoClient | None = None
        self._db: Database | None = None

    def _create_client(self) -> MongoClient:
        # tz_aware so createdAt values compare against UTC datetimes
        return MongoClient(
            self.uri,
            tz_aware=True,
            appname=self.app_name,
            serverSelectionTimeoutMS=self.server_selection_timeout_ms,
            **self.client_kwargs,
        )

    def connect(self) -> Database:
        """
        Open the client and verify the server answers a ping.

        Calling connect() on an open handle returns the existing database.

        Raises:
            pymongo.errors.PyMongoError: If the server cannot be reached
        """
        if self._db is not None:
            return self._db

        with trace_operation("mongo_connect", kind=trace.SpanKind.CLIENT):
            client = self._create_client()
            try:
                self._ping(client)
            except PyMongoError as e:
                DB_CONNECTION_ERRORS.labels(
                    operation="connect", error_type=type(e).__name__
                ).inc()
                client.close()
                logger.error(f"Error connecting to database: {type(e).__name__}: {e}")
                raise

            self._client = client
            if self.database_name:
                self._db = client[self.database_name]
            else:
                self._db = client.get_default_database(default=DEFAULT_DATABASE)

        DB_CONNECTED.set(1)
        logger.info(f"Connected to MongoDB database '{self._db.name}'")
        return self._db

    @staticmethod
    @retry_database_operation(max_retries=3, base_delay=1.0)
    def _ping(client: MongoClient) -> dict[str, Any]:
        return client.admin.command("ping")

    @property
    def database(self) -> Database:
        if self._db is None:
            raise ConnectionNotOpenError("MongoDB connection not open. Call connect() first.")
        return self._db

    def collection(self, name: str) -> Collection:
        """Get a collection from the connected database."""
        return self.database[name]

    def cluster_time(self) -> Any | None:
        """
        Current operation time reported by the server.

        Used to open a change stream exactly where a scan began. Returns
        None on deployments that do not report one (standalone servers)
        or when the ping fails.
        """
        try:
            reply = self.database.command("ping")
        except PyMongoError as e:
            DB_CONNECTION_ERRORS.labels(
                operation="cluster_time", error_type=type(e).__name__
            ).inc()
            logger.warning(f"Could not read cluster time: {type(e).__name__}")
            return None
        return reply.get("operationTime")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("MongoDB connection closed")
        self._client = None
        self._db = None
        DB_CONNECTED.set(0)

    def __enter__(self) -> "MongoConnection":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
