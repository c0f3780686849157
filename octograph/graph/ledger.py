"""Repair ledger for mutations that failed after their claim was committed.

Claims in the deduplication index are never released, so a store mutation
that fails after a successful claim would otherwise be lost for the rest of
the run. Each such mutation is recorded here with enough identity to replay
it, either by the in-process repair pass or by a later ``octograph repair``
run reading the persisted ledger.
"""

from __future__ import annotations

import threading
import typing as typ

import msgspec

from .observability import ErrorCategory, categorize_error

if typ.TYPE_CHECKING:
    from pathlib import Path


class FailureDetail(msgspec.Struct, frozen=True, kw_only=True):
    """Why a mutation failed."""

    error_type: str
    message: str
    category: ErrorCategory = ErrorCategory.UNKNOWN

    @classmethod
    def from_exception(cls, exc: BaseException) -> FailureDetail:
        """Capture type, message, and category from ``exc``."""
        return cls(
            error_type=type(exc).__name__,
            message=str(exc),
            category=categorize_error(exc),
        )

    @classmethod
    def blocked_by(cls, vertex_id: str) -> FailureDetail:
        """Describe an edge skipped because an endpoint vertex was not created."""
        return cls(
            error_type="EndpointMissing",
            message=f"endpoint vertex {vertex_id!r} was not created",
            category=ErrorCategory.TRANSIENT,
        )


class PendingVertex(
    msgspec.Struct, frozen=True, kw_only=True, tag="vertex", tag_field="kind"
):
    """A vertex whose creation did not complete."""

    label: str
    vertex_id: str
    failure: FailureDetail

    def identity(self) -> tuple[str, ...]:
        """Return the fields that name the vertex, ignoring the failure."""
        return ("vertex", self.label, self.vertex_id)

    def describe(self) -> str:
        """Return a ``key=value`` identity for log lines."""
        return f"kind=vertex label={self.label} vertex_id={self.vertex_id}"


class PendingEdge(
    msgspec.Struct, frozen=True, kw_only=True, tag="edge", tag_field="kind"
):
    """An edge whose creation did not complete."""

    label: str
    from_id: str
    to_id: str
    failure: FailureDetail

    def identity(self) -> tuple[str, ...]:
        """Return the fields that name the edge, ignoring the failure."""
        return ("edge", self.label, self.from_id, self.to_id)

    def describe(self) -> str:
        """Return a ``key=value`` identity for log lines."""
        return (
            f"kind=edge label={self.label!r} from_id={self.from_id} "
            f"to_id={self.to_id}"
        )


type PendingMutation = PendingVertex | PendingEdge

_ledger_decoder = msgspec.json.Decoder(list[PendingVertex | PendingEdge])


class RepairLedger:
    """Thread-safe, append-only collection of pending mutations."""

    def __init__(self, entries: typ.Iterable[PendingMutation] = ()) -> None:
        """Create a ledger, optionally seeded with ``entries``."""
        self._lock = threading.Lock()
        self._entries: list[PendingMutation] = list(entries)

    def record(self, mutation: PendingMutation) -> None:
        """Append a pending mutation."""
        with self._lock:
            self._entries.append(mutation)

    def entries(self) -> list[PendingMutation]:
        """Return a copy of the recorded mutations in insertion order."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        """Return the number of recorded mutations."""
        with self._lock:
            return len(self._entries)

    def dump(self, path: Path) -> None:
        """Write the ledger to ``path`` as JSON."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(msgspec.json.encode(self.entries()))

    @classmethod
    def load(cls, path: Path) -> RepairLedger:
        """Read a ledger previously written by :meth:`dump`."""
        return cls(_ledger_decoder.decode(path.read_bytes()))
