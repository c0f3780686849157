"""Graph materialization: dedup index, uploader, stores, and repair."""

from __future__ import annotations

from .dedup import DeduplicationIndex
from .errors import GraphStoreConfigError, GraphStoreError, GraphStoreResponseShapeError
from .gremlin import GremlinConfig, GremlinGraphStore
from .interactions import (
    OWNERSHIP,
    REPO_LABEL,
    USER_LABEL,
    VERB_PAIRS,
    Interaction,
    InteractionType,
    VerbPair,
    verbs_for,
)
from .ledger import FailureDetail, PendingEdge, PendingVertex, RepairLedger
from .observability import (
    ErrorCategory,
    UploadEventLogger,
    UploadEventType,
    categorize_error,
)
from .repair import RepairConfig, RepairPass, RepairResult, UnresolvedMutation
from .store import GraphStore, InMemoryGraphStore, MutationResult, StoredEdge
from .telemetry import ProgressReporter, Telemetry, TelemetrySnapshot, format_progress
from .uploader import (
    AttemptFailure,
    AttemptIncompleteError,
    InteractionUploader,
    UploaderConfig,
    UploadResult,
)

__all__ = [
    "OWNERSHIP",
    "REPO_LABEL",
    "USER_LABEL",
    "VERB_PAIRS",
    "AttemptFailure",
    "AttemptIncompleteError",
    "DeduplicationIndex",
    "ErrorCategory",
    "FailureDetail",
    "GraphStore",
    "GraphStoreConfigError",
    "GraphStoreError",
    "GraphStoreResponseShapeError",
    "GremlinConfig",
    "GremlinGraphStore",
    "InMemoryGraphStore",
    "Interaction",
    "InteractionType",
    "InteractionUploader",
    "MutationResult",
    "PendingEdge",
    "PendingVertex",
    "ProgressReporter",
    "RepairConfig",
    "RepairLedger",
    "RepairPass",
    "RepairResult",
    "StoredEdge",
    "Telemetry",
    "TelemetrySnapshot",
    "UnresolvedMutation",
    "UploadEventLogger",
    "UploadEventType",
    "UploadResult",
    "UploaderConfig",
    "VerbPair",
    "categorize_error",
    "format_progress",
    "verbs_for",
]
