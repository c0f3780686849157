"""Unit tests for the bounded-concurrency interaction uploader."""

from __future__ import annotations

import itertools
import json

import httpx
import pytest

from octograph.graph.dedup import DeduplicationIndex
from octograph.graph.gremlin import GremlinConfig, GremlinGraphStore
from octograph.graph.interactions import InteractionType
from octograph.graph.ledger import PendingEdge, PendingVertex, RepairLedger
from octograph.graph.observability import ErrorCategory
from octograph.graph.store import InMemoryGraphStore
from octograph.graph.telemetry import Telemetry
from octograph.graph.uploader import (
    AttemptIncompleteError,
    InteractionUploader,
    UploaderConfig,
)
from tests.helpers.femtologging_capture import capture_femto_logs
from tests.helpers.graph_stores import FlakyStore, InstrumentedStore
from tests.helpers.interactions import make_interaction


def _uploader(
    store: InMemoryGraphStore, *, concurrency: int = 32, strict: bool = False
) -> InteractionUploader:
    return InteractionUploader(
        store,
        index=DeduplicationIndex(),
        telemetry=Telemetry(),
        ledger=RepairLedger(),
        config=UploaderConfig(concurrency=concurrency, raise_on_error=strict),
    )


class TestScenarios:
    """Behaviour on small hand-written interaction lists."""

    @pytest.mark.asyncio
    async def test_exact_duplicate_produces_one_edge_pair(
        self, store: InMemoryGraphStore
    ) -> None:
        """Two identical watch events yield one starred pair."""
        interactions = [
            make_interaction("alice", "bob/repo1", InteractionType.WATCH_REPO),
            make_interaction("alice", "bob/repo1", InteractionType.WATCH_REPO),
        ]

        result = await _uploader(store).upload_all(interactions)

        assert store.vertex_ids() == {"alice", "bob", "bob-repo1"}
        assert store.duplicate_vertex_ids() == set()
        assert len(store.edges_labelled("starred")) == 1
        assert len(store.edges_labelled("was starred by")) == 1
        assert result.interactions_failed == 0

    @pytest.mark.asyncio
    async def test_repo_and_ownership_created_once(
        self, store: InMemoryGraphStore
    ) -> None:
        """A second interaction on the same repo does not recreate ownership."""
        interactions = [
            make_interaction("alice", "bob/repo1", InteractionType.FORK_REPO),
            make_interaction("carol", "bob/repo1", InteractionType.WATCH_REPO),
        ]

        await _uploader(store, concurrency=1).upload_all(interactions)

        assert store.vertex_ids("repo") == {"bob-repo1"}
        assert len(store.edges_labelled("owns")) == 1
        assert len(store.edges_labelled("owned by")) == 1
        assert len(store.edges_labelled("forked")) == 1
        assert len(store.edges_labelled("starred")) == 1

    @pytest.mark.asyncio
    async def test_owner_vertex_precedes_repo_and_ownership(
        self, store: InMemoryGraphStore
    ) -> None:
        """Within an attempt the owner exists before the repo and its edges."""
        await _uploader(store).upload(
            make_interaction("alice", "bob/repo1", InteractionType.PULL_REQUEST)
        )

        ids = [vertex_id for _, vertex_id in store.vertices]
        assert ids == ["alice", "bob", "bob-repo1"]
        labels = [edge.label for edge in store.edges]
        assert labels == [
            "owns",
            "owned by",
            "issued a pull request for",
            "pull request was issued by",
        ]

    @pytest.mark.asyncio
    async def test_self_owned_repo_creates_one_user_vertex(
        self, store: InMemoryGraphStore
    ) -> None:
        """A user acting on their own repo is claimed once."""
        await _uploader(store).upload(
            make_interaction("bob", "bob/repo1", InteractionType.OPEN_ISSUE)
        )

        assert store.vertex_ids("user") == {"bob"}
        assert store.duplicate_vertex_ids() == set()

    @pytest.mark.asyncio
    async def test_empty_input_completes(self, store: InMemoryGraphStore) -> None:
        """Uploading nothing finishes with zeroed counters."""
        result = await _uploader(store).upload_all([])

        assert result.interactions_total == 0
        assert result.snapshot.vertices == 0
        assert result.snapshot.edges == 0


@pytest.mark.asyncio
async def test_duplicate_triples_produce_one_pair_under_concurrency() -> None:
    """N copies of the same triple, raced across workers, yield one pair."""
    store = InstrumentedStore()
    interactions = [
        make_interaction("alice", "bob/repo1", InteractionType.COMMENT_ISSUE)
    ] * 50

    await _uploader(store, concurrency=16).upload_all(interactions)

    assert len(store.edges_labelled("commented on an issue for")) == 1
    assert len(store.edges_labelled("issue was commented on by")) == 1
    assert store.duplicate_vertex_ids() == set()


@pytest.mark.asyncio
async def test_telemetry_matches_distinct_entities() -> None:
    """Final counters equal the distinct vertices and twice the distinct pairs."""
    store = InstrumentedStore()
    users = [f"user{number}" for number in range(12)]
    slugs = [f"owner{number % 4}/repo{number}" for number in range(9)]
    kinds = list(InteractionType)
    interactions = [
        make_interaction(user, slug, kind)
        for user, slug, kind in itertools.islice(
            zip(
                itertools.cycle(users),
                itertools.cycle(slugs),
                itertools.cycle(kinds),
                strict=False,
            ),
            300,
        )
    ]
    uploader = _uploader(store, concurrency=8)

    result = await uploader.upload_all(interactions)

    distinct_vertices = (
        {i.user for i in interactions}
        | {i.repo_owner for i in interactions}
        | {i.repo for i in interactions}
    )
    distinct_repos = {i.repo for i in interactions}
    distinct_triples = {(i.user, i.type, i.repo) for i in interactions}
    assert result.snapshot.vertices == len(distinct_vertices)
    assert result.snapshot.edges == 2 * len(distinct_repos) + 2 * len(
        distinct_triples
    )
    assert result.snapshot.consumption == pytest.approx(store.calls)
    assert store.duplicate_vertex_ids() == set()
    assert uploader.index.interaction_count == len(distinct_triples)


@pytest.mark.parametrize("width", [1, 4, 32])
@pytest.mark.asyncio
async def test_in_flight_attempts_never_exceed_width(width: int) -> None:
    """The instrumented store never sees more overlapping calls than workers."""
    store = InstrumentedStore(delay_s=0.002)
    interactions = [
        make_interaction(
            f"user{number}", f"owner{number}/repo", InteractionType.FORK_REPO
        )
        for number in range(100)
    ]

    await _uploader(store, concurrency=width).upload_all(interactions)

    assert store.max_in_flight <= width
    assert store.max_in_flight == width


class TestFailures:
    """Store failures are isolated, recorded, and never double-created."""

    @pytest.mark.asyncio
    async def test_failed_repo_vertex_records_vertex_and_dependent_edges(
        self,
    ) -> None:
        """A failed repo vertex blocks its ownership and interaction edges."""
        store = FlakyStore(vertex_failures={"bob-repo1": 1})
        uploader = _uploader(store)

        with pytest.raises(AttemptIncompleteError) as excinfo:
            await uploader.upload(
                make_interaction("alice", "bob/repo1", InteractionType.WATCH_REPO)
            )

        entries = uploader.ledger.entries()
        assert isinstance(entries[0], PendingVertex)
        assert entries[0].vertex_id == "bob-repo1"
        assert entries[0].failure.category is ErrorCategory.TRANSIENT
        blocked = [entry for entry in entries if isinstance(entry, PendingEdge)]
        assert {edge.label for edge in blocked} == {
            "owns",
            "owned by",
            "starred",
            "was starred by",
        }
        assert all(edge.failure.error_type == "EndpointMissing" for edge in blocked)
        assert excinfo.value.failures[0].error_type == "GraphStoreError"
        assert store.edges == []
        assert store.vertex_ids() == {"alice", "bob"}

    @pytest.mark.asyncio
    async def test_failure_does_not_affect_other_interactions(self) -> None:
        """Other repos still upload when one repo vertex fails."""
        store = FlakyStore(vertex_failures={"bob-repo1": 1})
        interactions = [
            make_interaction("alice", "bob/repo1", InteractionType.WATCH_REPO),
            make_interaction("alice", "carol/repo2", InteractionType.WATCH_REPO),
            make_interaction("dave", "bob/repo1", InteractionType.FORK_REPO),
        ]

        result = await _uploader(store, concurrency=1).upload_all(interactions)

        assert [f.interaction.user for f in result.failures] == ["alice", "dave"]
        assert len(store.edges_labelled("starred")) == 1
        assert store.edges_labelled("forked") == []
        forked = [
            entry
            for entry in result.pending
            if isinstance(entry, PendingEdge) and entry.label == "forked"
        ]
        assert len(forked) == 1
        assert store.duplicate_vertex_ids() == set()

    @pytest.mark.asyncio
    async def test_failed_forward_edge_still_attempts_inverse(self) -> None:
        """Each edge of a pair is sent independently."""
        store = FlakyStore(edge_failures={"starred": 1})
        uploader = _uploader(store)

        with pytest.raises(AttemptIncompleteError):
            await uploader.upload(
                make_interaction("alice", "bob/repo1", InteractionType.WATCH_REPO)
            )

        assert [entry.identity() for entry in uploader.ledger.entries()] == [
            ("edge", "starred", "alice", "bob-repo1")
        ]
        assert len(store.edges_labelled("was starred by")) == 1

    @pytest.mark.asyncio
    async def test_failures_are_logged_with_entity_identity(self) -> None:
        """Each recorded mutation emits a structured warning."""
        store = FlakyStore(vertex_failures={"alice": 1}, status_code=400)
        uploader = _uploader(store)

        with capture_femto_logs("octograph.graph.observability") as capture:
            await uploader.upload_all(
                [make_interaction("alice", "bob/repo1", InteractionType.FORK_REPO)]
            )
            capture.wait_for_count(4)

        failed = capture.events("upload.mutation.failed")
        assert any("vertex_id=alice" in r.message for r in failed)
        assert any("error_category=client_error" in r.message for r in failed)

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_isolated(
        self, store: InMemoryGraphStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A non-store error in one attempt does not stop the others."""
        original = store.create_vertex

        async def _explode(label: str, vertex_id: str) -> object:
            if vertex_id == "mallory":
                msg = "bug"
                raise KeyError(msg)
            return await original(label, vertex_id)

        monkeypatch.setattr(store, "create_vertex", _explode)
        interactions = [
            make_interaction("mallory", "bob/repo1"),
            make_interaction("alice", "carol/repo2"),
        ]

        result = await _uploader(store, concurrency=1).upload_all(interactions)

        assert result.interactions_failed == 1
        assert result.failures[0].failure.error_type == "KeyError"
        assert "carol-repo2" in store.vertex_ids("repo")
        identities = [entry.identity() for entry in result.pending]
        assert ("vertex", "user", "mallory") in identities
        assert ("edge", "starred", "mallory", "bob-repo1") in identities
        assert "bob-repo1" in store.vertex_ids("repo")

    @pytest.mark.asyncio
    async def test_undecodable_store_response_leaves_a_repairable_vertex(
        self,
    ) -> None:
        """A claimed vertex whose request died in transport stays in the ledger."""

        def handler(request: httpx.Request) -> httpx.Response:
            bindings = json.loads(request.content)["bindings"]
            if bindings.get("vertexId") == "alice":
                msg = "malformed gzip body"
                raise httpx.DecodingError(msg, request=request)
            return httpx.Response(200, json={"result": {"data": [{"id": "x"}]}})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        store = GremlinGraphStore(
            GremlinConfig(endpoint="https://graph.example.test/gremlin"),
            http_client=client,
        )
        uploader = InteractionUploader(store)

        result = await uploader.upload_all([make_interaction("alice", "bob/repo1")])

        assert uploader.index.user_count == 2
        assert ("vertex", "user", "alice") in [
            entry.identity() for entry in result.pending
        ]
        assert result.failures[0].failure.category == ErrorCategory.TRANSIENT

    @pytest.mark.asyncio
    async def test_strict_mode_raises_exception_group(
        self, store: InMemoryGraphStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """raise_on_error surfaces unexpected errors after the join."""

        async def _explode(label: str, vertex_id: str) -> object:
            msg = "bug"
            raise KeyError(msg)

        monkeypatch.setattr(store, "create_vertex", _explode)

        with pytest.raises(ExceptionGroup):
            await _uploader(store, strict=True).upload_all(
                [make_interaction("alice", "bob/repo1")]
            )


def test_config_rejects_zero_concurrency() -> None:
    """The worker pool needs at least one worker."""
    with pytest.raises(ValueError, match="concurrency must be positive"):
        UploaderConfig(concurrency=0)


def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment variables override the defaults."""
    monkeypatch.setenv("OCTOGRAPH_UPLOAD_CONCURRENCY", "4")
    monkeypatch.setenv("OCTOGRAPH_PROGRESS_INTERVAL_S", "0.5")

    config = UploaderConfig.from_env()

    assert config.concurrency == 4
    assert config.progress_interval_s == 0.5


def test_config_from_env_rejects_non_positive(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Non-positive integers are rejected."""
    monkeypatch.setenv("OCTOGRAPH_UPLOAD_CONCURRENCY", "0")
    with pytest.raises(ValueError, match="OCTOGRAPH_UPLOAD_CONCURRENCY"):
        UploaderConfig.from_env()
