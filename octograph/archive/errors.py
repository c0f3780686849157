"""Archive shard errors."""

from __future__ import annotations


class ShardFetchError(RuntimeError):
    """Raised when a shard cannot be downloaded from the archive."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, filename: str, status_code: int) -> ShardFetchError:
        """Return an error for a non-2xx archive response."""
        return cls(
            f"archive HTTP {status_code} for {filename}", status_code=status_code
        )

    @classmethod
    def network_error(cls, filename: str, detail: str) -> ShardFetchError:
        """Return an error for timeouts and transport failures."""
        return cls(f"archive download of {filename} failed: {detail}")

    @classmethod
    def local_io(cls, filename: str, detail: str) -> ShardFetchError:
        """Return an error for cache directory or file write failures."""
        return cls(f"caching {filename} failed: {detail}")


class ShardDecodeError(RuntimeError):
    """Raised when a shard file cannot be read or decompressed."""

    @classmethod
    def unreadable(cls, filename: str, detail: str) -> ShardDecodeError:
        """Return an error for gzip or filesystem failures."""
        return cls(f"shard {filename} could not be read: {detail}")
