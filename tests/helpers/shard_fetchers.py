"""Shard fetcher doubles for decode and pipeline tests."""

from __future__ import annotations

import typing as typ

from octograph.archive.errors import ShardFetchError

if typ.TYPE_CHECKING:
    from pathlib import Path

    from octograph.archive.shards import ShardKey


class DirectoryFetcher:
    """Serve shards from a directory; missing files fail like an archive 404."""

    def __init__(self, root: Path) -> None:
        """Serve shard files found under ``root``."""
        self._root = root
        self.requested: list[ShardKey] = []

    async def fetch(self, shard: ShardKey) -> Path:
        """Return the shard file or raise :class:`ShardFetchError`."""
        self.requested.append(shard)
        path = self._root / shard.filename
        if not path.exists():
            raise ShardFetchError.http_error(shard.filename, 404)
        return path
