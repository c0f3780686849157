"""Locate, download, and cache GitHub Archive shards.

The archive publishes one gzip-compressed file per UTC hour, named
``YYYY-MM-DD-H.json.gz`` with the hour not zero-padded. Shards are cached
under a local directory and only downloaded when absent.
"""

from __future__ import annotations

import contextlib
import dataclasses
import datetime as dt
import os
import typing as typ
from pathlib import Path

import httpx

from octograph.common.env import parse_positive_float, parse_positive_int

from .errors import ShardFetchError

_DEFAULT_BASE_URL = "https://data.gharchive.org"
_DEFAULT_CACHE_DIR = "data"
_DEFAULT_DECODE_CONCURRENCY = 8
_DEFAULT_DOWNLOAD_TIMEOUT_S = 60.0
_HOURS_PER_DAY = 24
_HTTP_ERROR_STATUS_THRESHOLD = 400


@dataclasses.dataclass(frozen=True, slots=True, order=True)
class ShardKey:
    """One hourly archive shard."""

    date: dt.date
    hour: int

    def __post_init__(self) -> None:
        """Reject hours outside a single day."""
        if not 0 <= self.hour < _HOURS_PER_DAY:
            msg = f"hour must be within 0-23, got: {self.hour}"
            raise ValueError(msg)

    @property
    def filename(self) -> str:
        """Archive file name, e.g. ``2017-06-01-13.json.gz``."""
        return f"{self.date.isoformat()}-{self.hour}.json.gz"

    def __str__(self) -> str:
        """Return the archive file name."""
        return self.filename


def shard_range(
    start: dt.date, days: int, hours: int = _HOURS_PER_DAY
) -> list[ShardKey]:
    """Return shards for ``days`` consecutive days, ``hours`` per day.

    Parameters
    ----------
    start
        First day of the range.
    days
        Number of consecutive days; must be positive.
    hours
        Hours per day starting at midnight UTC; within 1-24.

    Examples
    --------
    >>> [str(key) for key in shard_range(dt.date(2017, 6, 1), 1, 2)]
    ['2017-06-01-0.json.gz', '2017-06-01-1.json.gz']

    """
    if days < 1:
        msg = f"days must be positive, got: {days}"
        raise ValueError(msg)
    if not 1 <= hours <= _HOURS_PER_DAY:
        msg = f"hours must be within 1-24, got: {hours}"
        raise ValueError(msg)
    return [
        ShardKey(date=start + dt.timedelta(days=offset), hour=hour)
        for offset in range(days)
        for hour in range(hours)
    ]


@dataclasses.dataclass(frozen=True, slots=True)
class ArchiveConfig:
    """Where shards come from and how many are decoded at once."""

    base_url: str = _DEFAULT_BASE_URL
    cache_dir: Path = Path(_DEFAULT_CACHE_DIR)
    decode_concurrency: int = _DEFAULT_DECODE_CONCURRENCY
    download_timeout_s: float = _DEFAULT_DOWNLOAD_TIMEOUT_S

    def __post_init__(self) -> None:
        """Reject a non-positive decode width."""
        if self.decode_concurrency < 1:
            msg = (
                "decode_concurrency must be positive, got: "
                f"{self.decode_concurrency}"
            )
            raise ValueError(msg)

    @classmethod
    def from_env(cls) -> ArchiveConfig:
        """Build configuration from ``OCTOGRAPH_ARCHIVE_*`` and friends.

        Raises
        ------
        ValueError
            If a numeric variable is malformed or not positive.

        """
        base_url = os.environ.get("OCTOGRAPH_ARCHIVE_BASE_URL", "").strip()
        cache_dir = os.environ.get("OCTOGRAPH_ARCHIVE_CACHE_DIR", "").strip()
        return cls(
            base_url=(base_url or _DEFAULT_BASE_URL).rstrip("/"),
            cache_dir=Path(cache_dir or _DEFAULT_CACHE_DIR),
            decode_concurrency=parse_positive_int(
                "OCTOGRAPH_DECODE_CONCURRENCY", _DEFAULT_DECODE_CONCURRENCY
            ),
            download_timeout_s=parse_positive_float(
                "OCTOGRAPH_DOWNLOAD_TIMEOUT_S", _DEFAULT_DOWNLOAD_TIMEOUT_S
            ),
        )


class ShardSource:
    """Resolve shards to local files, downloading missing ones."""

    def __init__(
        self,
        config: ArchiveConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the source with archive configuration."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.download_timeout_s,
            follow_redirects=True,
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    def path_for(self, shard: ShardKey) -> Path:
        """Return the cache location of ``shard``."""
        return self._config.cache_dir / shard.filename

    def url_for(self, shard: ShardKey) -> str:
        """Return the archive URL of ``shard``."""
        return f"{self._config.base_url.rstrip('/')}/{shard.filename}"

    async def fetch(self, shard: ShardKey) -> Path:
        """Return a local path for ``shard``, downloading it when absent.

        Raises
        ------
        ShardFetchError
            If the archive responds with an error status, the transfer fails,
            or the cache directory cannot hold the file.

        """
        target = self.path_for(shard)
        if target.exists():
            return target

        partial = target.with_name(f"{target.name}.part")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            await self._download(shard, partial)
            partial.replace(target)
        except OSError as exc:
            _discard(partial)
            raise ShardFetchError.local_io(shard.filename, str(exc)) from exc
        except BaseException:
            _discard(partial)
            raise
        return target

    async def _download(self, shard: ShardKey, destination: Path) -> None:
        try:
            async with self._client.stream("GET", self.url_for(shard)) as response:
                if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
                    raise ShardFetchError.http_error(
                        shard.filename, response.status_code
                    )
                with destination.open("wb") as handle:
                    async for chunk in response.aiter_bytes():
                        handle.write(chunk)
        except httpx.HTTPError as exc:
            raise ShardFetchError.network_error(shard.filename, str(exc)) from exc


def _discard(partial: Path) -> None:
    # A blocked .part path must not mask the error being reported.
    with contextlib.suppress(OSError):
        partial.unlink(missing_ok=True)


class ShardFetcher(typ.Protocol):
    """Anything that can resolve a shard to a local file."""

    async def fetch(self, shard: ShardKey) -> Path:
        """Return a local path holding ``shard``."""
        ...


__all__ = [
    "ArchiveConfig",
    "ShardFetcher",
    "ShardKey",
    "ShardSource",
    "shard_range",
]
