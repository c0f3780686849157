"""Graph store interface and the in-memory implementation.

The uploader talks to the store only through :class:`GraphStore`. Creation
calls are *not* assumed idempotent: calling ``create_vertex`` twice for the
same id may create two vertices, so callers must deduplicate before calling.
"""

from __future__ import annotations

import asyncio
import collections
import dataclasses
import typing as typ

from .errors import GraphStoreError

_HTTP_NOT_FOUND = 404


@dataclasses.dataclass(frozen=True, slots=True)
class MutationResult:
    """Outcome of a single store request."""

    resource_cost: float = 0.0


class GraphStore(typ.Protocol):
    """Interface for the remote graph store."""

    async def create_vertex(self, label: str, vertex_id: str) -> MutationResult:
        """Create a vertex with ``label`` and ``vertex_id``."""
        ...

    async def create_edge(
        self, from_id: str, to_id: str, label: str
    ) -> MutationResult:
        """Create a directed edge ``from_id -> to_id`` labelled ``label``."""
        ...

    async def reset(self) -> MutationResult:
        """Drop every vertex and edge."""
        ...

    async def vertex_exists(self, vertex_id: str) -> bool:
        """Return whether a vertex with ``vertex_id`` exists."""
        ...

    async def edge_exists(self, from_id: str, to_id: str, label: str) -> bool:
        """Return whether an edge ``from_id -> to_id`` labelled ``label`` exists."""
        ...

    async def aclose(self) -> None:
        """Release any held resources."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class StoredEdge:
    """Edge held by :class:`InMemoryGraphStore`."""

    from_id: str
    to_id: str
    label: str


class InMemoryGraphStore:
    """Dict-backed :class:`GraphStore` used for dry runs and tests.

    Like a real store it is a multigraph: repeated ``create_*`` calls produce
    duplicates, which lets tests detect double creation. Edges whose endpoints
    do not exist are rejected, mirroring a traversal-based ``addE``.
    """

    def __init__(self, *, cost_per_call: float = 1.0) -> None:
        """Create an empty store charging ``cost_per_call`` per request."""
        self._cost = cost_per_call
        self.vertices: list[tuple[str, str]] = []
        self.edges: list[StoredEdge] = []
        self.resets = 0
        self._vertex_ids: collections.Counter[str] = collections.Counter()

    async def create_vertex(self, label: str, vertex_id: str) -> MutationResult:
        """Record a vertex."""
        await asyncio.sleep(0)
        self.vertices.append((label, vertex_id))
        self._vertex_ids[vertex_id] += 1
        return MutationResult(resource_cost=self._cost)

    async def create_edge(
        self, from_id: str, to_id: str, label: str
    ) -> MutationResult:
        """Record an edge, rejecting dangling endpoints."""
        await asyncio.sleep(0)
        for endpoint in (from_id, to_id):
            if endpoint not in self._vertex_ids:
                raise GraphStoreError.rejected(
                    _HTTP_NOT_FOUND, f"vertex {endpoint!r} does not exist"
                )
        self.edges.append(StoredEdge(from_id=from_id, to_id=to_id, label=label))
        return MutationResult(resource_cost=self._cost)

    async def reset(self) -> MutationResult:
        """Drop everything."""
        self.vertices.clear()
        self.edges.clear()
        self._vertex_ids.clear()
        self.resets += 1
        return MutationResult(resource_cost=self._cost)

    async def vertex_exists(self, vertex_id: str) -> bool:
        """Return whether ``vertex_id`` has been created."""
        return vertex_id in self._vertex_ids

    async def edge_exists(self, from_id: str, to_id: str, label: str) -> bool:
        """Return whether a matching edge has been created."""
        return StoredEdge(from_id=from_id, to_id=to_id, label=label) in self.edges

    async def aclose(self) -> None:
        """Nothing to release."""

    def vertex_ids(self, label: str | None = None) -> set[str]:
        """Return the distinct vertex ids, optionally filtered by label."""
        return {vid for lbl, vid in self.vertices if label is None or lbl == label}

    def duplicate_vertex_ids(self) -> set[str]:
        """Return vertex ids created more than once."""
        return {vid for vid, count in self._vertex_ids.items() if count > 1}

    def edges_labelled(self, label: str) -> list[StoredEdge]:
        """Return every stored edge carrying ``label``."""
        return [edge for edge in self.edges if edge.label == label]


__all__ = [
    "GraphStore",
    "InMemoryGraphStore",
    "MutationResult",
    "StoredEdge",
]

