"""
CLI command implementations.

- sync: run the sync orchestrator until the change feed stops
"""

import argparse
import logging
import sys

from pymongo.errors import PyMongoError

from utils.db import MongoConnection
from utils.metrics import initialize_metrics
from utils.tracing import initialize_tracing, instrument_pymongo, shutdown_tracing

from .. import __version__
from ..checkpoint import CheckpointStore
from ..config import SyncConfig
from ..errors import ConfigurationError, MirrorError
from ..orchestrator import SyncOrchestrator
from .credentials import resolve_database_uri

logger = logging.getLogger(__name__)


def cmd_sync(args: argparse.Namespace) -> None:
    """
    Run the sync process

    Exits with status 1 on a configuration error or when the sync
    stops on an unrecovered error.

    Args:
        args: Parsed command-line arguments
    """
    try:
        config = SyncConfig.from_env(db_uri=resolve_database_uri())
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    publisher = None
    if config.metrics_port:
        try:
            publisher = initialize_metrics(port=config.metrics_port, version=__version__)["publisher"]
        except (RuntimeError, OSError) as e:
            logger.error(f"Could not start metrics server: {e}")
            sys.exit(1)

    initialize_tracing(service_version=__version__)
    instrument_pymongo()

    conn = MongoConnection(config.db_uri, database=config.db_name)
    try:
        conn.connect()
        orchestrator = SyncOrchestrator(
            source=conn.collection(config.source_collection),
            sink=conn.collection(config.sink_collection),
            checkpoints=CheckpointStore(conn.collection(config.checkpoint_collection)),
            config=config,
            cluster_time=conn.cluster_time,
        )
        state = orchestrator.run(full_reindex=args.full_reindex)
        logger.info(f"Sync finished ({state.value})")
    except KeyboardInterrupt:
        logger.info("Sync interrupted")
    except (MirrorError, PyMongoError) as e:
        logger.error(f"Sync failed: {type(e).__name__}: {e}")
        sys.exit(1)
    finally:
        conn.close()
        shutdown_tracing()
        if publisher is not None:
            publisher.stop()
