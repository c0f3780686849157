"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import os

import pytest

from octograph.graph.dedup import DeduplicationIndex
from octograph.graph.ledger import RepairLedger
from octograph.graph.store import InMemoryGraphStore
from octograph.graph.telemetry import Telemetry


@pytest.fixture
def store() -> InMemoryGraphStore:
    """Return an empty in-memory graph store charging one unit per call."""
    return InMemoryGraphStore()


@pytest.fixture
def index() -> DeduplicationIndex:
    """Return a fresh deduplication index."""
    return DeduplicationIndex()


@pytest.fixture
def telemetry() -> Telemetry:
    """Return zeroed telemetry counters."""
    return Telemetry()


@pytest.fixture
def ledger() -> RepairLedger:
    """Return an empty repair ledger."""
    return RepairLedger()


@pytest.fixture(autouse=True)
def _clear_octograph_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host ``OCTOGRAPH_*`` settings out of every test."""
    for name in list(os.environ):
        if name.startswith("OCTOGRAPH_"):
            monkeypatch.delenv(name, raising=False)
