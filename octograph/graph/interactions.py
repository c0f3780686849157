"""Interaction records and the edge labels used to materialize them.

An :class:`Interaction` is one user acting on one repository in one of five
ways. Each interaction type maps to a verb pair: the forward verb labels the
``user -> repo`` edge and the inverse verb labels the mirror ``repo -> user``
edge.
"""

from __future__ import annotations

import dataclasses
import enum
import types
import typing as typ

USER_LABEL: typ.Final = "user"
REPO_LABEL: typ.Final = "repo"


class InteractionType(enum.StrEnum):
    """Kinds of user-to-repository interaction extracted from the archive."""

    PULL_REQUEST = "PullRequest"
    OPEN_ISSUE = "OpenIssue"
    COMMENT_ISSUE = "CommentIssue"
    FORK_REPO = "ForkRepo"
    WATCH_REPO = "WatchRepo"


@dataclasses.dataclass(frozen=True, slots=True)
class Interaction:
    """A normalized user-to-repository interaction."""

    user: str
    repo_owner: str
    repo: str
    type: InteractionType


@dataclasses.dataclass(frozen=True, slots=True)
class VerbPair:
    """Forward and inverse edge labels for one relationship."""

    forward: str
    inverse: str


OWNERSHIP: typ.Final = VerbPair(forward="owns", inverse="owned by")

VERB_PAIRS: typ.Final[typ.Mapping[InteractionType, VerbPair]] = (
    types.MappingProxyType(
        {
            InteractionType.COMMENT_ISSUE: VerbPair(
                forward="commented on an issue for",
                inverse="issue was commented on by",
            ),
            InteractionType.FORK_REPO: VerbPair(
                forward="forked",
                inverse="was forked by",
            ),
            InteractionType.OPEN_ISSUE: VerbPair(
                forward="opened an issue for",
                inverse="issue was opened by",
            ),
            InteractionType.PULL_REQUEST: VerbPair(
                forward="issued a pull request for",
                inverse="pull request was issued by",
            ),
            InteractionType.WATCH_REPO: VerbPair(
                forward="starred",
                inverse="was starred by",
            ),
        }
    )
)


def _check_verb_totality() -> None:
    missing = [kind for kind in InteractionType if kind not in VERB_PAIRS]
    empty = [
        kind
        for kind, pair in VERB_PAIRS.items()
        if not pair.forward.strip() or not pair.inverse.strip()
    ]
    if missing or empty:
        msg = f"verb table incomplete: missing={missing} empty={empty}"
        raise RuntimeError(msg)


_check_verb_totality()


def verbs_for(kind: InteractionType) -> VerbPair:
    """Return the verb pair labelling edges for ``kind``."""
    return VERB_PAIRS[kind]
