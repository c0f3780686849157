"""Environment configuration for an Octograph run.

Each component owns a frozen configuration dataclass with a ``from_env``
constructor; :class:`OctographConfig` gathers them and turns malformed values
into a single :class:`OctographConfigError`.

Usage
-----
>>> config = OctographConfig.from_env()
>>> config.uploader.concurrency
32

"""

from __future__ import annotations

import dataclasses
import os

from octograph.archive.shards import ArchiveConfig
from octograph.graph.gremlin import GremlinConfig
from octograph.graph.repair import RepairConfig
from octograph.graph.uploader import UploaderConfig

_DEFAULT_LOG_LEVEL = "INFO"


class OctographConfigError(RuntimeError):
    """Raised when an environment variable holds an unusable value."""

    @classmethod
    def invalid(cls, detail: str) -> OctographConfigError:
        """Return an error wrapping a rejected configuration value."""
        return cls(f"invalid configuration: {detail}")


@dataclasses.dataclass(frozen=True, slots=True)
class OctographConfig:
    """Settings shared by the ``ingest`` and ``repair`` commands."""

    archive: ArchiveConfig = dataclasses.field(default_factory=ArchiveConfig)
    uploader: UploaderConfig = dataclasses.field(default_factory=UploaderConfig)
    repair: RepairConfig = dataclasses.field(default_factory=RepairConfig)
    log_level: str = _DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls) -> OctographConfig:
        """Read every ``OCTOGRAPH_*`` setting except the graph store's.

        Raises
        ------
        OctographConfigError
            If any variable is malformed or out of range.

        """
        try:
            return cls(
                archive=ArchiveConfig.from_env(),
                uploader=UploaderConfig.from_env(),
                repair=RepairConfig.from_env(),
                log_level=os.environ.get("OCTOGRAPH_LOG_LEVEL", _DEFAULT_LOG_LEVEL),
            )
        except ValueError as exc:
            raise OctographConfigError.invalid(str(exc)) from exc


def load_gremlin_config() -> GremlinConfig:
    """Read the Gremlin store settings, required unless running dry.

    Raises
    ------
    GraphStoreConfigError
        If the endpoint is missing.
    OctographConfigError
        If the timeout is malformed.

    """
    try:
        return GremlinConfig.from_env()
    except ValueError as exc:
        raise OctographConfigError.invalid(str(exc)) from exc


__all__ = ["OctographConfig", "OctographConfigError", "load_gremlin_config"]
