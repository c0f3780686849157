"""Reconcile mutations that failed after their claim was committed.

The repair pass replays every :data:`~octograph.graph.ledger.PendingMutation`
with create-if-absent semantics: it asks the store whether the entity already
exists and creates it only when it does not. Transient failures are retried
with exponential backoff; anything still failing is reported as unresolved
and can be written back to a ledger file for a later run.

Vertices are replayed before edges, so an edge whose endpoint was itself
pending can succeed in the same pass.
"""

from __future__ import annotations

import dataclasses
import typing as typ

import msgspec
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from octograph.common.env import parse_positive_int
from octograph.common.time import utcnow

from .errors import GraphStoreError
from .ledger import FailureDetail, PendingVertex, RepairLedger
from .observability import ErrorCategory, UploadEventLogger, categorize_error
from .telemetry import Telemetry

if typ.TYPE_CHECKING:
    import datetime as dt

    from .ledger import PendingMutation
    from .store import GraphStore

_DEFAULT_MAX_ATTEMPTS = 3
_DEFAULT_BACKOFF_INITIAL_S = 0.5
_DEFAULT_BACKOFF_MAX_S = 10.0


@dataclasses.dataclass(frozen=True, slots=True)
class RepairConfig:
    """Retry policy for the repair pass."""

    max_attempts: int = _DEFAULT_MAX_ATTEMPTS
    backoff_initial_s: float = _DEFAULT_BACKOFF_INITIAL_S
    backoff_max_s: float = _DEFAULT_BACKOFF_MAX_S

    def __post_init__(self) -> None:
        """Reject settings that would never attempt a repair."""
        if self.max_attempts < 1:
            msg = f"max_attempts must be positive, got: {self.max_attempts}"
            raise ValueError(msg)
        if self.backoff_initial_s < 0 or self.backoff_max_s < 0:
            msg = "backoff intervals must not be negative"
            raise ValueError(msg)

    @classmethod
    def from_env(cls) -> RepairConfig:
        """Build configuration from ``OCTOGRAPH_REPAIR_MAX_ATTEMPTS``."""
        return cls(
            max_attempts=parse_positive_int(
                "OCTOGRAPH_REPAIR_MAX_ATTEMPTS", _DEFAULT_MAX_ATTEMPTS
            )
        )


@dataclasses.dataclass(frozen=True, slots=True)
class UnresolvedMutation:
    """A pending mutation the repair pass could not reconcile."""

    mutation: PendingMutation
    failure: FailureDetail


@dataclasses.dataclass(frozen=True, slots=True)
class RepairResult:
    """Outcome of one repair pass."""

    repaired: tuple[PendingMutation, ...]
    already_present: tuple[PendingMutation, ...]
    unresolved: tuple[UnresolvedMutation, ...]
    duration: dt.timedelta

    @property
    def resolved(self) -> bool:
        """Whether every pending mutation is now in the store."""
        return not self.unresolved

    def unresolved_ledger(self) -> RepairLedger:
        """Return the unresolved mutations, carrying their latest failure."""
        return RepairLedger(
            msgspec.structs.replace(item.mutation, failure=item.failure)
            for item in self.unresolved
        )


def _is_transient(exc: BaseException) -> bool:
    return categorize_error(exc) is ErrorCategory.TRANSIENT


def _replay_order(entries: typ.Iterable[PendingMutation]) -> list[PendingMutation]:
    """Vertices first, then edges, each group in ledger order, duplicates once."""
    seen: set[tuple[str, ...]] = set()
    vertices: list[PendingMutation] = []
    edges: list[PendingMutation] = []
    for entry in entries:
        if entry.identity() in seen:
            continue
        seen.add(entry.identity())
        (vertices if isinstance(entry, PendingVertex) else edges).append(entry)
    return vertices + edges


class RepairPass:
    """Replay pending mutations against a store with create-if-absent."""

    def __init__(
        self,
        store: GraphStore,
        *,
        telemetry: Telemetry | None = None,
        config: RepairConfig | None = None,
        event_logger: UploadEventLogger | None = None,
    ) -> None:
        """Bind the pass to a store and the run's telemetry."""
        self._store = store
        self._telemetry = telemetry or Telemetry()
        self._config = config or RepairConfig()
        self._event_logger = event_logger or UploadEventLogger()

    async def run(self, ledger: RepairLedger) -> RepairResult:
        """Replay every mutation recorded in ``ledger``."""
        started_at = utcnow()
        repaired: list[PendingMutation] = []
        already_present: list[PendingMutation] = []
        unresolved: list[UnresolvedMutation] = []

        for mutation in _replay_order(ledger.entries()):
            try:
                created = await self._replay_with_retry(mutation)
            except GraphStoreError as exc:
                self._event_logger.log_unresolved(mutation, exc)
                unresolved.append(
                    UnresolvedMutation(mutation, FailureDetail.from_exception(exc))
                )
                continue
            self._event_logger.log_repaired(mutation, created=created)
            (repaired if created else already_present).append(mutation)

        self._event_logger.log_repair_completed(
            repaired=len(repaired),
            already_present=len(already_present),
            unresolved=len(unresolved),
        )
        return RepairResult(
            repaired=tuple(repaired),
            already_present=tuple(already_present),
            unresolved=tuple(unresolved),
            duration=utcnow() - started_at,
        )

    async def _replay_with_retry(self, mutation: PendingMutation) -> bool:
        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self._config.max_attempts),
            wait=wait_exponential(
                multiplier=self._config.backoff_initial_s,
                max=self._config.backoff_max_s,
            ),
            reraise=True,
        )
        return await retrying(self._replay, mutation)

    async def _replay(self, mutation: PendingMutation) -> bool:
        """Create ``mutation`` unless it exists; return whether it was created."""
        if isinstance(mutation, PendingVertex):
            if await self._store.vertex_exists(mutation.vertex_id):
                return False
            result = await self._store.create_vertex(
                mutation.label, mutation.vertex_id
            )
            self._telemetry.record_vertex(result.resource_cost)
            return True

        if await self._store.edge_exists(
            mutation.from_id, mutation.to_id, mutation.label
        ):
            return False
        result = await self._store.create_edge(
            mutation.from_id, mutation.to_id, mutation.label
        )
        self._telemetry.record_edge(result.resource_cost)
        return True


__all__ = [
    "RepairConfig",
    "RepairPass",
    "RepairResult",
    "UnresolvedMutation",
]
