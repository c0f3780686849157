"""Graph steps shared by the ingestion and repair features."""
# ruff: noqa: D103

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from pytest_bdd import given, parsers, then, when

from octograph.graph.interactions import InteractionType
from octograph.graph.store import InMemoryGraphStore
from octograph.graph.telemetry import Telemetry
from octograph.graph.uploader import InteractionUploader, UploaderConfig
from tests.helpers.graph_stores import FlakyStore
from tests.helpers.interactions import make_interaction

if typ.TYPE_CHECKING:
    from octograph.graph.interactions import Interaction
    from octograph.graph.ledger import RepairLedger
    from octograph.graph.repair import RepairResult


_ALWAYS = 1_000


def run_async[T](coro: typ.Coroutine[typ.Any, typ.Any, T]) -> T:
    """Run async coroutines in sync BDD step functions."""
    return asyncio.run(coro)


class GraphContext(typ.TypedDict, total=False):
    """State shared between graph BDD steps."""

    store: InMemoryGraphStore
    interactions: list[Interaction]
    telemetry: Telemetry
    ledger: RepairLedger
    repair: RepairResult


@pytest.fixture
def graph_context() -> GraphContext:
    """Return fresh per-scenario state."""
    return {"interactions": [], "telemetry": Telemetry()}


@given("an empty graph store")
def empty_store(graph_context: GraphContext) -> None:
    graph_context["store"] = InMemoryGraphStore()


@given(parsers.parse('the first creation of vertex "{vertex_id}" fails'))
def flaky_store(graph_context: GraphContext, vertex_id: str) -> None:
    graph_context["store"] = FlakyStore(vertex_failures={vertex_id: 1})


@given(
    parsers.parse(
        'the graph store always rejects vertex "{vertex_id}" with status {status:d}'
    )
)
def rejecting_store(graph_context: GraphContext, vertex_id: str, status: int) -> None:
    graph_context["store"] = FlakyStore(
        vertex_failures={vertex_id: _ALWAYS}, status_code=status
    )


@given(parsers.parse('"{user}" watches "{slug}"'))
def user_watches(graph_context: GraphContext, user: str, slug: str) -> None:
    graph_context["interactions"].append(
        make_interaction(user, slug, InteractionType.WATCH_REPO)
    )


@given(parsers.parse('"{user}" forks "{slug}"'))
def user_forks(graph_context: GraphContext, user: str, slug: str) -> None:
    graph_context["interactions"].append(
        make_interaction(user, slug, InteractionType.FORK_REPO)
    )


@when(parsers.parse("the interactions are uploaded with concurrency {width:d}"))
def upload_interactions(graph_context: GraphContext, width: int) -> None:
    uploader = InteractionUploader(
        graph_context["store"],
        telemetry=graph_context["telemetry"],
        config=UploaderConfig(concurrency=width),
    )
    run_async(uploader.upload_all(graph_context["interactions"]))
    graph_context["ledger"] = uploader.ledger


@then(parsers.parse('the store holds the vertices "{ids}"'))
def store_holds_vertices(graph_context: GraphContext, ids: str) -> None:
    expected = {vertex_id.strip() for vertex_id in ids.split(",")}
    assert graph_context["store"].vertex_ids() == expected


@then(parsers.parse('the store holds {count:d} "{label}" edge'))
def store_holds_edges(graph_context: GraphContext, count: int, label: str) -> None:
    assert len(graph_context["store"].edges_labelled(label)) == count


@then("no vertex was created twice")
def no_duplicate_vertices(graph_context: GraphContext) -> None:
    assert graph_context["store"].duplicate_vertex_ids() == set()


@then(parsers.parse("the telemetry counts {vertices:d} vertices and {edges:d} edges"))
def telemetry_counts(graph_context: GraphContext, vertices: int, edges: int) -> None:
    snapshot = graph_context["telemetry"].snapshot()
    assert (snapshot.vertices, snapshot.edges) == (vertices, edges)
