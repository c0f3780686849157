"""Bounded-concurrency upload of interactions into the graph store.

Each interaction runs a four-step protocol. Every step claims an entity in the
:class:`~octograph.graph.dedup.DeduplicationIndex` and, only when the claim is
new, issues the store mutation for it:

1. the acting user's vertex;
2. the repository owner's vertex;
3. the repository vertex followed by its ``owns`` / ``owned by`` edges;
4. the interaction's forward and inverse verb edges.

Claims are committed before the mutation and never released. A mutation that
fails is recorded in the :class:`~octograph.graph.ledger.RepairLedger` and the
attempt carries on with its remaining steps; edges whose endpoint vertex
could not be created are recorded as blocked rather than sent to the store.
Every claimed entity therefore ends the run either created or in the ledger.
"""

from __future__ import annotations

import asyncio
import dataclasses
import typing as typ

from octograph.common.env import parse_positive_float, parse_positive_int
from octograph.common.time import utcnow

from .dedup import DeduplicationIndex
from .errors import GraphStoreError
from .interactions import OWNERSHIP, REPO_LABEL, USER_LABEL, verbs_for
from .ledger import FailureDetail, PendingEdge, PendingVertex, RepairLedger
from .observability import UploadEventLogger
from .telemetry import Telemetry

if typ.TYPE_CHECKING:
    from .interactions import Interaction, VerbPair
    from .ledger import PendingMutation
    from .store import GraphStore
    from .telemetry import TelemetrySnapshot

_DEFAULT_CONCURRENCY = 32
_DEFAULT_PROGRESS_INTERVAL_S = 1.0


@dataclasses.dataclass(frozen=True, slots=True)
class UploaderConfig:
    """Runtime knobs for the upload phase.

    Attributes
    ----------
    concurrency
        Maximum number of interactions in flight at once. Default 32.
    progress_interval_s
        Refresh interval of the live progress line. Default 1 second.
    raise_on_error
        Re-raise unexpected (non-store) attempt failures as an
        ``ExceptionGroup`` once every attempt has finished.

    """

    concurrency: int = _DEFAULT_CONCURRENCY
    progress_interval_s: float = _DEFAULT_PROGRESS_INTERVAL_S
    raise_on_error: bool = False

    def __post_init__(self) -> None:
        """Reject non-positive settings."""
        if self.concurrency < 1:
            msg = f"concurrency must be positive, got: {self.concurrency}"
            raise ValueError(msg)
        if self.progress_interval_s <= 0:
            msg = (
                "progress_interval_s must be positive, got: "
                f"{self.progress_interval_s}"
            )
            raise ValueError(msg)

    @classmethod
    def from_env(cls) -> UploaderConfig:
        """Create configuration from environment variables.

        Reads ``OCTOGRAPH_UPLOAD_CONCURRENCY`` and
        ``OCTOGRAPH_PROGRESS_INTERVAL_S``; both must be positive.

        Raises
        ------
        ValueError
            If either variable is set to a non-positive or malformed value.

        """
        return cls(
            concurrency=parse_positive_int(
                "OCTOGRAPH_UPLOAD_CONCURRENCY", _DEFAULT_CONCURRENCY
            ),
            progress_interval_s=parse_positive_float(
                "OCTOGRAPH_PROGRESS_INTERVAL_S", _DEFAULT_PROGRESS_INTERVAL_S
            ),
        )


class AttemptIncompleteError(RuntimeError):
    """Raised by :meth:`InteractionUploader.upload` when a mutation failed.

    Every failed or blocked mutation has already been recorded in the repair
    ledger; ``failures`` lists why, in the order they happened.
    """

    def __init__(self, failures: typ.Sequence[FailureDetail]) -> None:
        """Keep the failures recorded during the attempt."""
        self.failures = tuple(failures)
        super().__init__(self.failures[0].message)


@dataclasses.dataclass(frozen=True, slots=True)
class AttemptFailure:
    """An interaction whose upload attempt did not complete."""

    interaction: Interaction
    failure: FailureDetail


@dataclasses.dataclass(frozen=True, slots=True)
class UploadResult:
    """Summary of one upload phase."""

    interactions_total: int
    failures: tuple[AttemptFailure, ...]
    pending: tuple[PendingMutation, ...]
    snapshot: TelemetrySnapshot

    @property
    def interactions_failed(self) -> int:
        """Number of attempts that did not complete every mutation."""
        return len(self.failures)


@dataclasses.dataclass(slots=True)
class _AttemptLog:
    """Failures of one attempt; ``errors`` holds the non-store exceptions."""

    failures: list[FailureDetail] = dataclasses.field(default_factory=list)
    errors: list[Exception] = dataclasses.field(default_factory=list)


def _pending_edge(
    from_id: str, to_id: str, label: str, failure: FailureDetail
) -> PendingEdge:
    return PendingEdge(label=label, from_id=from_id, to_id=to_id, failure=failure)


class _VertexGate:
    """Completion signals for vertices created during this run.

    An attempt that lost a claim to a concurrent attempt may reach its edge
    step before the winner's vertex exists. Edge creation waits here for both
    endpoints. Vertices with no signal were created outside this uploader and
    count as present.
    """

    def __init__(self) -> None:
        self._signals: dict[str, list[asyncio.Future[bool]]] = {}

    def open(self, vertex_id: str) -> asyncio.Future[bool]:
        signal: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._signals.setdefault(vertex_id, []).append(signal)
        return signal

    async def wait(self, vertex_id: str) -> bool:
        # A user login may equal a repo id; either creation satisfies an edge.
        signals = list(self._signals.get(vertex_id, ()))
        if not signals:
            return True
        results = await asyncio.gather(*(asyncio.shield(s) for s in signals))
        return any(results)


class InteractionUploader:
    """Materialize interactions as graph vertices and edges."""

    def __init__(  # noqa: PLR0913
        self,
        store: GraphStore,
        *,
        index: DeduplicationIndex | None = None,
        telemetry: Telemetry | None = None,
        ledger: RepairLedger | None = None,
        config: UploaderConfig | None = None,
        event_logger: UploadEventLogger | None = None,
    ) -> None:
        """Bind the uploader to a store and the run's shared state."""
        self._store = store
        self._index = index or DeduplicationIndex()
        self._telemetry = telemetry or Telemetry()
        self._ledger = ledger or RepairLedger()
        self._config = config or UploaderConfig()
        self._event_logger = event_logger or UploadEventLogger()
        self._gate = _VertexGate()

    @property
    def index(self) -> DeduplicationIndex:
        """The run's deduplication index."""
        return self._index

    @property
    def telemetry(self) -> Telemetry:
        """The run's telemetry counters."""
        return self._telemetry

    @property
    def ledger(self) -> RepairLedger:
        """Mutations that failed after their claim was committed."""
        return self._ledger

    async def upload(self, interaction: Interaction) -> None:
        """Run the four-step creation protocol for one interaction.

        Raises
        ------
        AttemptIncompleteError
            If any mutation failed or was blocked; all four steps still ran.
        Exception
            The first non-store error raised by a mutation, re-raised once
            all four steps ran and the failed mutations were recorded.

        """
        user = interaction.user
        owner = interaction.repo_owner
        repo = interaction.repo
        attempt = _AttemptLog()

        if self._index.claim_user(user):
            await self._create_vertex(USER_LABEL, user, attempt)

        if self._index.claim_user(owner):
            await self._create_vertex(USER_LABEL, owner, attempt)

        if self._index.claim_repo(owner, repo):
            await self._create_vertex(REPO_LABEL, repo, attempt)
            await self._create_edge_pair(owner, repo, OWNERSHIP, attempt)

        if self._index.claim_interaction(user, interaction.type, repo):
            await self._create_edge_pair(
                user, repo, verbs_for(interaction.type), attempt
            )

        if attempt.errors:
            raise attempt.errors[0]
        if attempt.failures:
            raise AttemptIncompleteError(attempt.failures)

    async def upload_all(
        self, interactions: typ.Sequence[Interaction]
    ) -> UploadResult:
        """Upload every interaction with bounded concurrency.

        Returns once every attempt has finished, successfully or not.
        """
        width = min(self._config.concurrency, max(len(interactions), 1))
        self._event_logger.log_run_started(
            interactions=len(interactions), concurrency=width
        )
        started_at = utcnow()
        self._telemetry.start()

        pending = iter(interactions)
        failures: list[AttemptFailure] = []
        unexpected: list[Exception] = []
        await asyncio.gather(
            *(self._drain(pending, failures, unexpected) for _ in range(width))
        )

        snapshot = self._telemetry.snapshot()
        self._event_logger.log_run_completed(
            snapshot,
            failed_attempts=len(failures),
            pending_mutations=len(self._ledger),
            duration=utcnow() - started_at,
        )
        if unexpected and self._config.raise_on_error:
            msg = "upload attempts failed"
            raise ExceptionGroup(msg, unexpected)

        return UploadResult(
            interactions_total=len(interactions),
            failures=tuple(failures),
            pending=tuple(self._ledger.entries()),
            snapshot=snapshot,
        )

    async def _drain(
        self,
        pending: typ.Iterator[Interaction],
        failures: list[AttemptFailure],
        unexpected: list[Exception],
    ) -> None:
        # Workers share one iterator; next() never suspends, so each
        # interaction is handed to exactly one worker.
        for interaction in pending:
            try:
                await self.upload(interaction)
            except AttemptIncompleteError as exc:
                failures.append(AttemptFailure(interaction, exc.failures[0]))
            except Exception as exc:  # noqa: BLE001 - isolate per attempt
                self._event_logger.log_attempt_failed(interaction, exc)
                failures.append(
                    AttemptFailure(interaction, FailureDetail.from_exception(exc))
                )
                unexpected.append(exc)

    def _record(
        self,
        mutation: PendingMutation,
        attempt: _AttemptLog,
        exc: Exception | None = None,
    ) -> None:
        self._ledger.record(mutation)
        self._event_logger.log_mutation_failed(mutation)
        attempt.failures.append(mutation.failure)
        if exc is not None and not isinstance(exc, GraphStoreError):
            attempt.errors.append(exc)

    async def _create_vertex(
        self, label: str, vertex_id: str, attempt: _AttemptLog
    ) -> None:
        signal = self._gate.open(vertex_id)
        try:
            result = await self._store.create_vertex(label, vertex_id)
        except Exception as exc:  # noqa: BLE001 - the claim is already committed
            signal.set_result(False)
            failure = FailureDetail.from_exception(exc)
            self._record(
                PendingVertex(label=label, vertex_id=vertex_id, failure=failure),
                attempt,
                exc,
            )
            return
        except BaseException:
            signal.set_result(False)
            raise
        self._telemetry.record_vertex(result.resource_cost)
        signal.set_result(True)

    async def _create_edge_pair(
        self,
        from_id: str,
        to_id: str,
        verbs: VerbPair,
        attempt: _AttemptLog,
    ) -> None:
        edges = ((from_id, to_id, verbs.forward), (to_id, from_id, verbs.inverse))

        for endpoint in (from_id, to_id):
            if not await self._gate.wait(endpoint):
                blocked = FailureDetail.blocked_by(endpoint)
                for src, dst, label in edges:
                    self._record(_pending_edge(src, dst, label, blocked), attempt)
                return

        for src, dst, label in edges:
            try:
                result = await self._store.create_edge(src, dst, label)
            except Exception as exc:  # noqa: BLE001 - the claim is already committed
                failure = FailureDetail.from_exception(exc)
                self._record(_pending_edge(src, dst, label, failure), attempt, exc)
                continue
            self._telemetry.record_edge(result.resource_cost)
