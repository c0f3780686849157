"""Typed GitHub Archive event records.

Only the fields needed to derive an interaction are declared; msgspec skips
everything else in the event body. The five event kinds form a tagged union
keyed on the archive's ``type`` field, so lines of any other kind fail
validation and are dropped by the decoder.
"""

from __future__ import annotations

import msgspec


class Actor(msgspec.Struct, frozen=True):
    """The account that triggered an event."""

    login: str


class RepoRef(msgspec.Struct, frozen=True):
    """The repository an event refers to, as an ``owner/name`` slug."""

    name: str


class ActionPayload(msgspec.Struct, frozen=True):
    """Payload fields shared by the action-bearing event kinds."""

    action: str | None = None


class _ArchiveEvent(msgspec.Struct, frozen=True, tag_field="type"):
    actor: Actor
    repo: RepoRef


class WatchEvent(_ArchiveEvent, frozen=True, tag="WatchEvent"):
    """A user starred a repository."""


class ForkEvent(_ArchiveEvent, frozen=True, tag="ForkEvent"):
    """A user forked a repository."""


class IssueCommentEvent(_ArchiveEvent, frozen=True, tag="IssueCommentEvent"):
    """Activity on an issue comment."""

    payload: ActionPayload = msgspec.field(default_factory=ActionPayload)


class IssuesEvent(_ArchiveEvent, frozen=True, tag="IssuesEvent"):
    """Activity on an issue."""

    payload: ActionPayload = msgspec.field(default_factory=ActionPayload)


class PullRequestEvent(_ArchiveEvent, frozen=True, tag="PullRequestEvent"):
    """Activity on a pull request."""

    payload: ActionPayload = msgspec.field(default_factory=ActionPayload)


type ArchiveEvent = (
    WatchEvent | ForkEvent | IssueCommentEvent | IssuesEvent | PullRequestEvent
)

__all__ = [
    "ActionPayload",
    "Actor",
    "ArchiveEvent",
    "ForkEvent",
    "IssueCommentEvent",
    "IssuesEvent",
    "PullRequestEvent",
    "RepoRef",
    "WatchEvent",
]
