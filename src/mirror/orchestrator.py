"""
Sync orchestrator.

Decides, from the ``--full-reindex`` flag and the stored checkpoint, which
of three start-up paths to take, and wires the scanners and the change
feed subscriber together:

- FORCED_REINDEX: full sync, then exit.
- NO_CHECKPOINT: full sync, then tail the change feed.
- HAS_CHECKPOINT: catch up from (checkpoint - safety window), then tail
  the change feed from the same point.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from prometheus_client import Counter
from pymongo.collection import Collection

from anonymization import anonymize_customer
from utils.metrics import get_or_create_metric
from utils.tracing import add_span_attributes, trace_function

from .change_feed import ChangeFeedSubscriber
from .checkpoint import CheckpointStore
from .config import SyncConfig
from .models import SyncState
from .scanner import CatchUpScanner, FullSyncScanner

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# Metrics
SYNC_RUNS = get_or_create_metric(
    lambda: Counter(
        "mirror_sync_runs_total",
        "Sync process start-ups by selected state",
        ["state"],
    ),
    "mirror_sync_runs_total",
)


class SyncOrchestrator:
    """
    Top-level control flow of the sync process.

    Usage:
        orchestrator = SyncOrchestrator(source, sink, checkpoints, config)
        orchestrator.run(full_reindex=args.full_reindex)
    """

    def __init__(
        self,
        source: Collection,
        sink: Collection,
        checkpoints: CheckpointStore,
        config: SyncConfig,
        anonymize: Callable[[dict[str, Any]], dict[str, Any]] = anonymize_customer,
        cluster_time: Callable[[], Any] | None = None,
    ):
        """
        Args:
            source: Collection holding raw customer records
            sink: Collection receiving scrubbed records
            checkpoints: Checkpoint store
            config: Sync settings
            anonymize: Record anonymizer
            cluster_time: Returns the server's current operation time;
                when given, the change stream opens at the time the
                preceding full sync or catch-up scan began
        """
        self.source = source
        self.sink = sink
        self.checkpoints = checkpoints
        self.config = config
        self.anonymize = anonymize
        self.cluster_time = cluster_time
        self.checkpoint: datetime | None = None
        self.subscriber: ChangeFeedSubscriber | None = None

    def determine_state(self, full_reindex: bool) -> SyncState:
        """
        Pick the start-up path and remember the stored checkpoint.

        A checkpoint that cannot be read is treated as absent, which
        means a full sync: duplicates are harmless, gaps are not.
        """
        self.checkpoint = None
        if full_reindex:
            return SyncState.FORCED_REINDEX

        loaded = self.checkpoints.load()
        if not loaded.ok:
            logger.warning(f"Checkpoint unreadable ({loaded.error}); starting from scratch")
            return SyncState.NO_CHECKPOINT

        if loaded.value is None:
            return SyncState.NO_CHECKPOINT

        self.checkpoint = loaded.value
        return SyncState.HAS_CHECKPOINT

    @trace_function("sync_run", component="orchestrator")
    def run(self, full_reindex: bool = False) -> SyncState:
        """
        Run the sync process.

        Returns only for a forced reindex, or when the change feed
        subscriber is stopped or gives up.

        Args:
            full_reindex: Rebuild the sink from scratch and exit

        Returns:
            The state that was selected

        Raises:
            ChangeFeedError: If the change feed cannot be kept open
        """
        state = self.determine_state(full_reindex)
        SYNC_RUNS.labels(state=state.value).inc()
        add_span_attributes(state=state.value)

        if state is SyncState.FORCED_REINDEX:
            logger.info("Full reindex requested")
            self._full_scanner().run()
            logger.info("Full reindex finished; exiting")
            return state

        if state is SyncState.NO_CHECKPOINT:
            logger.info("No checkpoint found; running full sync before realtime sync")
            start_at = self._read_cluster_time()
            self._full_scanner().run()
            self._subscribe(EPOCH, start_at)
            return state

        checkpoint = self.checkpoint
        adjusted = checkpoint - self.config.safety_window
        logger.info(
            f"Resuming from checkpoint {checkpoint.isoformat()} "
            f"(catch-up from {adjusted.isoformat()})"
        )
        start_at = self._read_cluster_time()
        self._catch_up(adjusted)
        self._subscribe(adjusted, start_at)
        return state

    def stop(self) -> None:
        """Stop the change feed subscriber, if one is running."""
        if self.subscriber is not None:
            self.subscriber.stop()

    def _read_cluster_time(self) -> Any:
        return self.cluster_time() if self.cluster_time is not None else None

    def _full_scanner(self) -> FullSyncScanner:
        return FullSyncScanner(
            self.source,
            self.sink,
            self.checkpoints,
            batch_size=self.config.batch_size,
            anonymize=self.anonymize,
        )

    def _catch_up(self, since: datetime) -> None:
        CatchUpScanner(
            self.source,
            self.sink,
            self.checkpoints,
            batch_size=self.config.batch_size,
            anonymize=self.anonymize,
        ).run(since)

    def _subscribe(self, since: datetime, start_at_operation_time: Any = None) -> None:
        self.subscriber = ChangeFeedSubscriber(
            self.source,
            self.sink,
            self.checkpoints,
            anonymize=self.anonymize,
            max_retries=self.config.feed_max_retries,
            base_delay=self.config.feed_retry_base_delay,
            safety_window=self.config.safety_window,
            on_reconnect=self._catch_up,
            cluster_time=self.cluster_time,
        )
        self.subscriber.start(since, start_at_operation_time=start_at_operation_time)
