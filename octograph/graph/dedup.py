"""In-memory deduplication index for graph materialization.

The index decides which entities an interaction introduces for the first
time. Every ``claim_*`` call is a "first caller wins" check-and-set: it returns
``True`` to exactly one caller per logical entity for the lifetime of the
index, no matter how many asyncio tasks or OS threads race on it.

Entries are created with ``dict.setdefault``, which is atomic for ``str`` keys,
and membership changes happen under a lock owned by the entry, so callers
working on different users never contend.
"""

from __future__ import annotations

import dataclasses
import threading
import typing as typ

if typ.TYPE_CHECKING:
    from .interactions import InteractionType


@dataclasses.dataclass(slots=True, eq=False)
class _OwnerEntry:
    """Per-login state: user claim flag plus the repositories it owns."""

    lock: threading.Lock = dataclasses.field(default_factory=threading.Lock)
    claimed: bool = False
    repos: set[str] = dataclasses.field(default_factory=set)


@dataclasses.dataclass(slots=True, eq=False)
class _InteractionEntry:
    """Per-login set of ``(type, repo)`` pairs already materialized."""

    lock: threading.Lock = dataclasses.field(default_factory=threading.Lock)
    seen: set[tuple[InteractionType, str]] = dataclasses.field(default_factory=set)


class DeduplicationIndex:
    """Track users, owned repositories, and interaction triples seen in a run."""

    def __init__(self) -> None:
        """Create an empty index."""
        self._owners: dict[str, _OwnerEntry] = {}
        self._interactions: dict[str, _InteractionEntry] = {}

    def _owner_entry(self, login: str) -> _OwnerEntry:
        entry = self._owners.get(login)
        if entry is None:
            entry = self._owners.setdefault(login, _OwnerEntry())
        return entry

    def _interaction_entry(self, login: str) -> _InteractionEntry:
        entry = self._interactions.get(login)
        if entry is None:
            entry = self._interactions.setdefault(login, _InteractionEntry())
        return entry

    def claim_user(self, login: str) -> bool:
        """Return ``True`` the first time ``login`` is claimed as a user vertex."""
        entry = self._owner_entry(login)
        with entry.lock:
            if entry.claimed:
                return False
            entry.claimed = True
            return True

    def claim_repo(self, owner: str, repo: str) -> bool:
        """Return ``True`` the first time ``repo`` is recorded under ``owner``.

        The owner's entry is created on demand. Doing so does not claim the
        owner as a user; :meth:`claim_user` still succeeds once for it.
        """
        entry = self._owner_entry(owner)
        with entry.lock:
            if repo in entry.repos:
                return False
            entry.repos.add(repo)
            return True

    def claim_interaction(self, user: str, kind: InteractionType, repo: str) -> bool:
        """Return ``True`` the first time ``(user, kind, repo)`` is claimed."""
        entry = self._interaction_entry(user)
        key = (kind, repo)
        with entry.lock:
            if key in entry.seen:
                return False
            entry.seen.add(key)
            return True

    @property
    def user_count(self) -> int:
        """Number of logins claimed as user vertices."""
        return sum(1 for entry in list(self._owners.values()) if entry.claimed)

    @property
    def repo_count(self) -> int:
        """Number of repositories claimed across all owners."""
        return sum(len(entry.repos) for entry in list(self._owners.values()))

    @property
    def interaction_count(self) -> int:
        """Number of distinct interaction triples claimed."""
        return sum(len(entry.seen) for entry in list(self._interactions.values()))
