"""Turn archive shards into interaction records.

Each shard is gzip-compressed newline-delimited JSON. Lines are decoded into
the tagged event union from :mod:`octograph.archive.models`; lines of other
event kinds, lines that fail validation, and events whose action is not the
one an interaction is derived from are counted as dropped.

Decoding runs concurrently across shards: one task per shard, bounded by a
semaphore, with the CPU-bound decompression and parsing pushed to a worker
thread. A shard that cannot be fetched or read is logged and reported without
affecting its siblings.
"""

from __future__ import annotations

import asyncio
import dataclasses
import gzip
import typing as typ
import zlib

import msgspec

from octograph.common.slug import repo_owner, repo_vertex_id
from octograph.common.time import utcnow
from octograph.graph.interactions import Interaction, InteractionType
from octograph.graph.observability import categorize_error
from octograph.logging import get_logger, log_info, log_warning

from .errors import ShardDecodeError, ShardFetchError
from .models import (
    ForkEvent,
    IssueCommentEvent,
    IssuesEvent,
    PullRequestEvent,
    WatchEvent,
)

if typ.TYPE_CHECKING:
    import datetime as dt
    from pathlib import Path

    from .models import ArchiveEvent
    from .shards import ShardFetcher, ShardKey

logger = get_logger(__name__)

_event_decoder = msgspec.json.Decoder(
    WatchEvent | ForkEvent | IssueCommentEvent | IssuesEvent | PullRequestEvent
)

# Event kind -> (interaction type, required payload action or None).
_EVENT_RULES: dict[type[msgspec.Struct], tuple[InteractionType, str | None]] = {
    WatchEvent: (InteractionType.WATCH_REPO, None),
    ForkEvent: (InteractionType.FORK_REPO, None),
    IssueCommentEvent: (InteractionType.COMMENT_ISSUE, "created"),
    IssuesEvent: (InteractionType.OPEN_ISSUE, "opened"),
    PullRequestEvent: (InteractionType.PULL_REQUEST, "opened"),
}


def interaction_from_event(event: ArchiveEvent) -> Interaction | None:
    """Return the interaction an event represents, or ``None`` to drop it.

    Examples
    --------
    >>> from octograph.archive.models import Actor, RepoRef
    >>> event = WatchEvent(actor=Actor("alice"), repo=RepoRef("bob/repo1"))
    >>> interaction_from_event(event).repo
    'bob-repo1'

    """
    kind, action = _EVENT_RULES[type(event)]
    if action is not None and getattr(event.payload, "action", None) != action:
        return None
    login = event.actor.login.strip()
    slug = event.repo.name
    try:
        owner = repo_owner(slug)
    except ValueError:
        return None
    if not login:
        return None
    return Interaction(
        user=login,
        repo_owner=owner,
        repo=repo_vertex_id(slug),
        type=kind,
    )


@dataclasses.dataclass(frozen=True, slots=True)
class DecodedLines:
    """Interactions decoded from a batch of lines, with line accounting."""

    interactions: tuple[Interaction, ...]
    events_seen: int
    events_dropped: int


def decode_lines(lines: typ.Iterable[bytes]) -> DecodedLines:
    """Decode newline-delimited JSON event lines.

    Blank lines are skipped and not counted. Every other line counts as seen;
    it is dropped when it cannot be decoded as a known event kind or yields
    no interaction.
    """
    interactions: list[Interaction] = []
    seen = 0
    dropped = 0
    for line in lines:
        if not line.strip():
            continue
        seen += 1
        try:
            event = _event_decoder.decode(line)
        except (msgspec.DecodeError, msgspec.ValidationError):
            dropped += 1
            continue
        interaction = interaction_from_event(event)
        if interaction is None:
            dropped += 1
            continue
        interactions.append(interaction)
    return DecodedLines(tuple(interactions), seen, dropped)


def decode_shard_file(path: Path) -> DecodedLines:
    """Decompress and decode a shard file.

    Raises
    ------
    ShardDecodeError
        If the file cannot be opened or is not valid gzip.

    """
    try:
        with gzip.open(path, "rb") as handle:
            return decode_lines(handle)
    except (OSError, EOFError, zlib.error) as exc:
        raise ShardDecodeError.unreadable(path.name, str(exc)) from exc


@dataclasses.dataclass(frozen=True, slots=True)
class ShardDecodeResult:
    """Outcome of decoding one shard."""

    shard: ShardKey
    interactions: tuple[Interaction, ...]
    events_seen: int
    events_dropped: int


@dataclasses.dataclass(frozen=True, slots=True)
class ShardFailure:
    """A shard that could not be fetched or read."""

    shard: ShardKey
    error_type: str
    message: str


@dataclasses.dataclass(frozen=True, slots=True)
class DecodeSummary:
    """Everything the decode phase produced."""

    interactions: tuple[Interaction, ...]
    results: tuple[ShardDecodeResult, ...]
    failures: tuple[ShardFailure, ...]

    @property
    def events_seen(self) -> int:
        """Event lines read across every decoded shard."""
        return sum(result.events_seen for result in self.results)

    @property
    def events_dropped(self) -> int:
        """Event lines that produced no interaction."""
        return sum(result.events_dropped for result in self.results)


class DecodeEventLogger:
    """Emit structured decode events via femtologging."""

    def log_shard_completed(
        self, result: ShardDecodeResult, *, duration: dt.timedelta
    ) -> None:
        """Log a decoded shard with its line accounting."""
        log_info(
            logger,
            "[decode.shard.completed] shard=%s interactions=%d events_seen=%d "
            "events_dropped=%d duration_seconds=%.3f",
            result.shard,
            len(result.interactions),
            result.events_seen,
            result.events_dropped,
            duration.total_seconds(),
        )

    def log_shard_failed(self, shard: ShardKey, error: BaseException) -> None:
        """Log a shard that could not be fetched or read."""
        log_warning(
            logger,
            "[decode.shard.failed] shard=%s error_type=%s error_category=%s "
            "error_message=%s",
            shard,
            type(error).__name__,
            categorize_error(error),
            str(error),
        )


async def decode_shards(
    shards: typ.Sequence[ShardKey],
    fetcher: ShardFetcher,
    *,
    concurrency: int = 8,
    event_logger: DecodeEventLogger | None = None,
) -> DecodeSummary:
    """Fetch and decode ``shards`` concurrently.

    Parameters
    ----------
    shards
        Shards to decode; results keep this order.
    fetcher
        Resolves each shard to a local file.
    concurrency
        Maximum number of shards fetched or decoded at once.
    event_logger
        Destination for ``decode.shard.*`` events.

    Returns
    -------
    DecodeSummary
        The combined interaction collection plus per-shard outcomes.

    """
    if concurrency < 1:
        msg = f"concurrency must be positive, got: {concurrency}"
        raise ValueError(msg)
    events = event_logger or DecodeEventLogger()
    semaphore = asyncio.Semaphore(concurrency)
    collected: list[Interaction] = []
    results: list[ShardDecodeResult | None] = [None] * len(shards)
    failures: list[ShardFailure] = []

    async def _decode_one(position: int, shard: ShardKey) -> None:
        async with semaphore:
            started_at = utcnow()
            try:
                path = await fetcher.fetch(shard)
                decoded = await asyncio.to_thread(decode_shard_file, path)
            except (ShardFetchError, ShardDecodeError) as exc:
                events.log_shard_failed(shard, exc)
                failures.append(ShardFailure(shard, type(exc).__name__, str(exc)))
                return
            except Exception as exc:  # noqa: BLE001 - one shard never stops siblings
                events.log_shard_failed(shard, exc)
                failures.append(ShardFailure(shard, type(exc).__name__, str(exc)))
                return
        result = ShardDecodeResult(
            shard=shard,
            interactions=decoded.interactions,
            events_seen=decoded.events_seen,
            events_dropped=decoded.events_dropped,
        )
        # Appended on the event loop thread, never from the worker thread.
        collected.extend(result.interactions)
        results[position] = result
        events.log_shard_completed(result, duration=utcnow() - started_at)

    async with asyncio.TaskGroup() as group:
        for position, shard in enumerate(shards):
            group.create_task(_decode_one(position, shard))

    return DecodeSummary(
        interactions=tuple(collected),
        results=tuple(result for result in results if result is not None),
        failures=tuple(sorted(failures, key=lambda failure: failure.shard)),
    )


__all__ = [
    "DecodeEventLogger",
    "DecodeSummary",
    "DecodedLines",
    "ShardDecodeResult",
    "ShardFailure",
    "decode_lines",
    "decode_shard_file",
    "decode_shards",
    "interaction_from_event",
]
