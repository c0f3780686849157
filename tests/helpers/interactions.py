"""Builders for interaction records used across tests."""

from __future__ import annotations

from octograph.common.slug import repo_owner, repo_vertex_id
from octograph.graph.interactions import Interaction, InteractionType


def make_interaction(
    user: str,
    slug: str,
    kind: InteractionType = InteractionType.WATCH_REPO,
) -> Interaction:
    """Build the interaction ``user`` performing ``kind`` on ``slug``."""
    return Interaction(
        user=user,
        repo_owner=repo_owner(slug),
        repo=repo_vertex_id(slug),
        type=kind,
    )
