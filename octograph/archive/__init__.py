"""GitHub Archive shards and the events they carry.

The decoder lives in :mod:`octograph.archive.decoder`; it depends on the graph
package, which in turn categorizes this package's errors.
"""

from __future__ import annotations

from .errors import ShardDecodeError, ShardFetchError
from .shards import ArchiveConfig, ShardFetcher, ShardKey, ShardSource, shard_range

__all__ = [
    "ArchiveConfig",
    "ShardDecodeError",
    "ShardFetchError",
    "ShardFetcher",
    "ShardKey",
    "ShardSource",
    "shard_range",
]
