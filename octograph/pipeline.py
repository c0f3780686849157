"""End-to-end ingestion run.

A run has four sequential phases:

1. decode every shard into one interaction collection;
2. wipe the graph store;
3. upload the interactions with bounded concurrency while a progress line
   refreshes once a second;
4. replay any mutation that failed after its claim was committed.

The deduplication index, telemetry, and repair ledger are created per run and
passed to the stages that share them.
"""

from __future__ import annotations

import dataclasses
import typing as typ

from octograph.archive.decoder import DecodeEventLogger, decode_shards
from octograph.graph.dedup import DeduplicationIndex
from octograph.graph.ledger import RepairLedger
from octograph.graph.observability import UploadEventLogger
from octograph.graph.repair import RepairPass
from octograph.graph.telemetry import ProgressReporter, Telemetry
from octograph.graph.uploader import InteractionUploader
from octograph.logging import get_logger, log_info

from .config import OctographConfig

if typ.TYPE_CHECKING:
    from octograph.archive.decoder import DecodeSummary
    from octograph.archive.shards import ShardFetcher, ShardKey
    from octograph.graph.repair import RepairResult, UnresolvedMutation
    from octograph.graph.store import GraphStore
    from octograph.graph.telemetry import TelemetrySnapshot
    from octograph.graph.uploader import UploadResult

logger = get_logger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class IngestSummary:
    """Outcome of one ingestion run."""

    decode: DecodeSummary
    upload: UploadResult
    repair: RepairResult
    snapshot: TelemetrySnapshot

    @property
    def unresolved(self) -> tuple[UnresolvedMutation, ...]:
        """Mutations still missing from the store after the repair pass."""
        return self.repair.unresolved


class IngestPipeline:
    """Decode archive shards and materialize them in a graph store."""

    def __init__(  # noqa: PLR0913
        self,
        store: GraphStore,
        fetcher: ShardFetcher,
        *,
        config: OctographConfig | None = None,
        progress_stream: typ.TextIO | None = None,
        decode_logger: DecodeEventLogger | None = None,
        upload_logger: UploadEventLogger | None = None,
    ) -> None:
        """Bind the pipeline to its store, shard source, and settings."""
        self._store = store
        self._fetcher = fetcher
        self._config = config or OctographConfig()
        self._progress_stream = progress_stream
        self._decode_logger = decode_logger or DecodeEventLogger()
        self._upload_logger = upload_logger or UploadEventLogger()

    async def run(self, shards: typ.Sequence[ShardKey]) -> IngestSummary:
        """Run every phase over ``shards`` and return the combined summary."""
        log_info(logger, "Decoding %d shards", len(shards))
        decoded = await decode_shards(
            shards,
            self._fetcher,
            concurrency=self._config.archive.decode_concurrency,
            event_logger=self._decode_logger,
        )
        log_info(
            logger,
            "Decoded %d interactions from %d shards (%d failed, %d events dropped)",
            len(decoded.interactions),
            len(decoded.results),
            len(decoded.failures),
            decoded.events_dropped,
        )

        await self._store.reset()

        telemetry = Telemetry()
        ledger = RepairLedger()
        uploader = InteractionUploader(
            self._store,
            index=DeduplicationIndex(),
            telemetry=telemetry,
            ledger=ledger,
            config=self._config.uploader,
            event_logger=self._upload_logger,
        )
        reporter = ProgressReporter(
            telemetry,
            interval_s=self._config.uploader.progress_interval_s,
            stream=self._progress_stream,
        )
        async with reporter:
            uploaded = await uploader.upload_all(decoded.interactions)

        repaired = await self._repair(ledger, telemetry)
        return IngestSummary(
            decode=decoded,
            upload=uploaded,
            repair=repaired,
            snapshot=telemetry.snapshot(),
        )

    async def _repair(
        self, ledger: RepairLedger, telemetry: Telemetry
    ) -> RepairResult:
        repair_pass = RepairPass(
            self._store,
            telemetry=telemetry,
            config=self._config.repair,
            event_logger=self._upload_logger,
        )
        return await repair_pass.run(ledger)


__all__ = ["IngestPipeline", "IngestSummary"]
