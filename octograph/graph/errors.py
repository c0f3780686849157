"""Graph store errors."""

from __future__ import annotations


class GraphStoreError(RuntimeError):
    """Raised when the graph store is unreachable or rejects a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int) -> GraphStoreError:
        """Return an error for non-2xx HTTP responses."""
        return cls(f"graph store HTTP {status_code}", status_code=status_code)

    @classmethod
    def rejected(cls, code: int, message: str) -> GraphStoreError:
        """Return an error for a request the store refused in its response body."""
        return cls(
            f"graph store rejected request ({code}): {message}", status_code=code
        )

    @classmethod
    def timeout(cls) -> GraphStoreError:
        """Return an error for a request that timed out."""
        return cls("graph store request timed out")

    @classmethod
    def network_error(cls, detail: str) -> GraphStoreError:
        """Return an error for DNS, connection, or TLS failures."""
        return cls(f"graph store network error: {detail}")


class GraphStoreResponseShapeError(GraphStoreError):
    """Raised when a store response is missing expected fields."""

    @classmethod
    def missing(cls, field: str) -> GraphStoreResponseShapeError:
        """Return an error for a missing response field."""
        return cls(f"graph store response missing expected field: {field}")


class GraphStoreConfigError(RuntimeError):
    """Raised when graph store configuration is invalid."""

    @classmethod
    def missing_endpoint(cls) -> GraphStoreConfigError:
        """Return an error when no Gremlin endpoint is configured."""
        return cls("OCTOGRAPH_GREMLIN_ENDPOINT is required for the Gremlin store")

    @classmethod
    def empty_endpoint(cls) -> GraphStoreConfigError:
        """Return an error when the configured endpoint is blank."""
        return cls("Gremlin endpoint must be non-empty")
