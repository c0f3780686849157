"""Observability primitives for graph uploads.

Provides error categorization and structured femtologging events for upload
runs, failed mutations, and the repair pass. Events are emitted as
``[event.type] key=value`` lines suitable for log aggregators.
"""

from __future__ import annotations

import enum
import typing as typ

from octograph.archive.errors import ShardDecodeError, ShardFetchError
from octograph.logging import get_logger, log_error, log_info, log_warning

from .errors import (
    GraphStoreConfigError,
    GraphStoreError,
    GraphStoreResponseShapeError,
)

if typ.TYPE_CHECKING:
    import datetime as dt

    from .interactions import Interaction
    from .ledger import PendingMutation
    from .telemetry import TelemetrySnapshot

logger = get_logger(__name__)

_HTTP_SERVER_ERROR_THRESHOLD = 500
_HTTP_RATE_LIMITED = 429


class UploadEventType(enum.StrEnum):
    """Structured log event types for the upload and repair phases."""

    RUN_STARTED = "upload.run.started"
    RUN_COMPLETED = "upload.run.completed"
    MUTATION_FAILED = "upload.mutation.failed"
    ATTEMPT_FAILED = "upload.attempt.failed"
    REPAIR_REPAIRED = "repair.mutation.repaired"
    REPAIR_UNRESOLVED = "repair.mutation.unresolved"
    REPAIR_COMPLETED = "repair.run.completed"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts and repair decisions."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    SCHEMA_DRIFT = "schema_drift"
    CONFIGURATION = "configuration"
    DECODE = "decode"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (GraphStoreConfigError, ErrorCategory.CONFIGURATION),
    (ShardDecodeError, ErrorCategory.DECODE),
    (TimeoutError, ErrorCategory.TRANSIENT),
    (ConnectionError, ErrorCategory.TRANSIENT),
)


def _categorize_status(status_code: int | None) -> ErrorCategory:
    if status_code is None:
        return ErrorCategory.TRANSIENT
    if status_code == _HTTP_RATE_LIMITED:
        return ErrorCategory.TRANSIENT
    if status_code >= _HTTP_SERVER_ERROR_THRESHOLD:
        return ErrorCategory.TRANSIENT
    return ErrorCategory.CLIENT_ERROR


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting and retry decisions.

    Returns:
        ErrorCategory indicating the type of failure.

    """
    # Shape errors subclass GraphStoreError.
    if isinstance(exc, GraphStoreResponseShapeError):
        return ErrorCategory.SCHEMA_DRIFT
    if isinstance(exc, GraphStoreError | ShardFetchError):
        # Timeouts and network failures carry no status code.
        return _categorize_status(exc.status_code)

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    return ErrorCategory.UNKNOWN


class UploadEventLogger:
    """Emit structured upload and repair events via femtologging.

    Success events are INFO, individual failures WARNING (they are repairable),
    and failures that survive the repair pass ERROR.
    """

    def log_run_started(self, *, interactions: int, concurrency: int) -> None:
        """Log the start of the upload phase."""
        log_info(
            logger,
            "[%s] interactions=%d concurrency=%d",
            UploadEventType.RUN_STARTED,
            interactions,
            concurrency,
        )

    def log_run_completed(
        self,
        snapshot: TelemetrySnapshot,
        *,
        failed_attempts: int,
        pending_mutations: int,
        duration: dt.timedelta,
    ) -> None:
        """Log upload completion with final counters."""
        log_info(
            logger,
            "[%s] vertices=%d edges=%d consumption=%.2f rate=%.2f "
            "failed_attempts=%d pending_mutations=%d duration_seconds=%.3f",
            UploadEventType.RUN_COMPLETED,
            snapshot.vertices,
            snapshot.edges,
            snapshot.consumption,
            snapshot.rate,
            failed_attempts,
            pending_mutations,
            duration.total_seconds(),
        )

    def log_mutation_failed(self, mutation: PendingMutation) -> None:
        """Log a failed store mutation with the entity it targeted."""
        log_warning(
            logger,
            "[%s] %s error_type=%s error_category=%s error_message=%s",
            UploadEventType.MUTATION_FAILED,
            mutation.describe(),
            mutation.failure.error_type,
            mutation.failure.category,
            mutation.failure.message,
        )

    def log_attempt_failed(
        self, interaction: Interaction, error: BaseException
    ) -> None:
        """Log an upload attempt that failed outside the store protocol."""
        log_error(
            logger,
            "[%s] user=%s repo=%s type=%s error_type=%s error_category=%s "
            "error_message=%s",
            UploadEventType.ATTEMPT_FAILED,
            interaction.user,
            interaction.repo,
            interaction.type,
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )

    def log_repaired(self, mutation: PendingMutation, *, created: bool) -> None:
        """Log a pending mutation reconciled by the repair pass."""
        log_info(
            logger,
            "[%s] %s created=%s",
            UploadEventType.REPAIR_REPAIRED,
            mutation.describe(),
            created,
        )

    def log_unresolved(self, mutation: PendingMutation, error: BaseException) -> None:
        """Log a pending mutation the repair pass could not reconcile."""
        log_error(
            logger,
            "[%s] %s error_type=%s error_category=%s error_message=%s",
            UploadEventType.REPAIR_UNRESOLVED,
            mutation.describe(),
            type(error).__name__,
            categorize_error(error),
            str(error),
        )

    def log_repair_completed(
        self, *, repaired: int, already_present: int, unresolved: int
    ) -> None:
        """Log repair pass totals."""
        log_info(
            logger,
            "[%s] repaired=%d already_present=%d unresolved=%d",
            UploadEventType.REPAIR_COMPLETED,
            repaired,
            already_present,
            unresolved,
        )
