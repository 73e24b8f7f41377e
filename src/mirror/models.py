"""
Value types shared by the sync engine.

Change events are a closed sum type: every consumer dispatches over the
five variants and ends with ``assert_never`` so a new variant cannot be
silently dropped.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Union

logger = logging.getLogger(__name__)


class OperationType(str, Enum):
    """Change stream operation types the subscriber asks for."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    DROP = "drop"
    DROP_DATABASE = "dropDatabase"


# Variants that never carry a post-image
NON_DATA_OPERATIONS = (
    OperationType.DELETE,
    OperationType.DROP,
    OperationType.DROP_DATABASE,
)


@dataclass(frozen=True)
class InsertEvent:
    document: dict[str, Any]
    resume_token: Any = None


@dataclass(frozen=True)
class UpdateEvent:
    document: dict[str, Any]
    resume_token: Any = None


@dataclass(frozen=True)
class DeleteEvent:
    document_id: Any
    resume_token: Any = None


@dataclass(frozen=True)
class CollectionDropEvent:
    collection: str | None
    resume_token: Any = None


@dataclass(frozen=True)
class DatabaseDropEvent:
    database: str | None
    resume_token: Any = None


ChangeEvent = Union[
    InsertEvent,
    UpdateEvent,
    DeleteEvent,
    CollectionDropEvent,
    DatabaseDropEvent,
]


def parse_change_event(raw: dict[str, Any]) -> ChangeEvent | None:
    """
    Convert a raw change stream document into a ChangeEvent.

    Returns None for events the engine does not model (``invalidate``,
    ``replace``, ``rename``...) and for insert/update events whose
    post-image is missing, e.g. an update whose document was deleted
    before the lookup ran.
    """
    op = raw.get("operationType")
    token = raw.get("_id")
    ns = raw.get("ns") or {}

    if op in (OperationType.INSERT.value, OperationType.UPDATE.value):
        document = raw.get("fullDocument")
        if not document:
            logger.debug(f"Skipping {op} event without fullDocument")
            return None
        if op == OperationType.INSERT.value:
            return InsertEvent(document=document, resume_token=token)
        return UpdateEvent(document=document, resume_token=token)

    if op == OperationType.DELETE.value:
        return DeleteEvent(
            document_id=(raw.get("documentKey") or {}).get("_id"),
            resume_token=token,
        )

    if op == OperationType.DROP.value:
        return CollectionDropEvent(collection=ns.get("coll"), resume_token=token)

    if op == OperationType.DROP_DATABASE.value:
        return DatabaseDropEvent(database=ns.get("db"), resume_token=token)

    return None


class SyncState(str, Enum):
    """Start-up state selected by the orchestrator."""

    FORCED_REINDEX = "forced_reindex"
    NO_CHECKPOINT = "no_checkpoint"
    HAS_CHECKPOINT = "has_checkpoint"


@dataclass(frozen=True)
class CheckpointResult:
    """
    Outcome of a best-effort checkpoint operation.

    Callers may ignore it; a failed save only widens the replay window
    of the next restart.
    """

    ok: bool
    value: datetime | None = None
    error: str | None = None

    @classmethod
    def success(cls, value: datetime | None = None) -> "CheckpointResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: Exception) -> "CheckpointResult":
        return cls(ok=False, error=f"{type(error).__name__}: {error}")


@dataclass(frozen=True)
class BatchWriteResult:
    """Per-batch outcome of an unordered bulk insert."""

    attempted: int = 0
    inserted: int = 0
    duplicates: int = 0
    failed: int = 0

    @property
    def ok(self) -> bool:
        return self.failed == 0


@dataclass
class ScanResult:
    """Totals of a full sync or catch-up scan."""

    scanned: int = 0
    inserted: int = 0
    duplicates: int = 0
    failed: int = 0
    batches: int = 0
    max_timestamp: datetime | None = None

    def add_batch(self, result: BatchWriteResult) -> None:
        self.inserted += result.inserted
        self.duplicates += result.duplicates
        self.failed += result.failed
        self.batches += 1

    def observe(self, created_at: datetime | None) -> None:
        self.scanned += 1
        if created_at is not None and (
            self.max_timestamp is None or created_at > self.max_timestamp
        ):
            self.max_timestamp = created_at
