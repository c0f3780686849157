"""Command-line entry point: ``octograph ingest`` and ``octograph repair``."""

from __future__ import annotations

import argparse
import asyncio
import datetime as dt
import typing as typ
from pathlib import Path

import msgspec

from octograph.archive.shards import ShardSource, shard_range
from octograph.graph.errors import GraphStoreConfigError, GraphStoreError
from octograph.graph.gremlin import GremlinGraphStore
from octograph.graph.ledger import RepairLedger
from octograph.graph.repair import RepairPass
from octograph.graph.store import InMemoryGraphStore
from octograph.graph.telemetry import format_progress
from octograph.logging import configure_logging, get_logger, log_warning

from .config import OctographConfig, OctographConfigError, load_gremlin_config
from .pipeline import IngestPipeline

if typ.TYPE_CHECKING:
    from octograph.graph.repair import RepairResult
    from octograph.graph.store import GraphStore

    from .pipeline import IngestSummary

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_UNRESOLVED = 1
EXIT_CONFIG_ERROR = 2


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        msg = f"expected a date as YYYY-MM-DD, got: {value!r}"
        raise argparse.ArgumentTypeError(msg) from exc


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        msg = f"expected an integer, got: {value!r}"
        raise argparse.ArgumentTypeError(msg) from exc
    if parsed < 1:
        msg = f"expected a positive integer, got: {parsed}"
        raise argparse.ArgumentTypeError(msg)
    return parsed


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="octograph",
        description="Load GitHub Archive interactions into a graph store.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    ingest = commands.add_parser("ingest", help="Decode shards and upload them")
    ingest.add_argument(
        "--start", type=_parse_date, required=True, help="First day, YYYY-MM-DD"
    )
    ingest.add_argument(
        "--days", type=_positive_int, default=1, help="Consecutive days to load"
    )
    ingest.add_argument(
        "--hours", type=_positive_int, default=24, help="Hours per day from 00:00"
    )
    ingest.add_argument(
        "--dry-run",
        action="store_true",
        help="Upload into an in-memory store instead of the Gremlin endpoint",
    )
    ingest.add_argument(
        "--ledger-out",
        type=Path,
        default=None,
        help="Optional path to write unresolved mutations as JSON",
    )

    repair = commands.add_parser("repair", help="Replay a ledger of failures")
    repair.add_argument(
        "--ledger", type=Path, required=True, help="Ledger written by ingest"
    )
    repair.add_argument(
        "--dry-run",
        action="store_true",
        help="List the pending mutations without contacting the store",
    )
    repair.add_argument(
        "--ledger-out",
        type=Path,
        default=None,
        help="Optional path to write mutations that remain unresolved",
    )
    return parser


def _configure_logging(config: OctographConfig) -> None:
    level, invalid = configure_logging(config.log_level)
    if invalid:
        log_warning(
            logger,
            "Invalid OCTOGRAPH_LOG_LEVEL %r, falling back to %s",
            config.log_level,
            level,
        )


def _open_store(*, dry_run: bool) -> GraphStore:
    if dry_run:
        return InMemoryGraphStore()
    return GremlinGraphStore(load_gremlin_config())


def _print_ingest_summary(summary: IngestSummary) -> None:
    print(
        f"shards decoded: {len(summary.decode.results)} "
        f"failed: {len(summary.decode.failures)} "
        f"interactions: {len(summary.decode.interactions)}"
    )
    print(format_progress(summary.snapshot))
    print(
        f"consumption: {summary.snapshot.consumption:.2f} "
        f"failed attempts: {summary.upload.interactions_failed} "
        f"repaired: {len(summary.repair.repaired)} "
        f"unresolved: {len(summary.unresolved)}"
    )


def _print_repair_summary(result: RepairResult) -> None:
    print(
        f"repaired: {len(result.repaired)} "
        f"already present: {len(result.already_present)} "
        f"unresolved: {len(result.unresolved)}"
    )


async def _ingest(args: argparse.Namespace, config: OctographConfig) -> int:
    shards = shard_range(args.start, args.days, args.hours)
    store = _open_store(dry_run=args.dry_run)
    source = ShardSource(config.archive)
    try:
        summary = await IngestPipeline(store, source, config=config).run(shards)
    finally:
        await source.aclose()
        await store.aclose()

    _print_ingest_summary(summary)
    if args.ledger_out is not None:
        summary.repair.unresolved_ledger().dump(args.ledger_out)
    if summary.unresolved or summary.decode.failures:
        return EXIT_UNRESOLVED
    return EXIT_OK


async def _repair(
    args: argparse.Namespace, config: OctographConfig, ledger: RepairLedger
) -> int:
    if args.dry_run:
        for mutation in ledger.entries():
            print(f"{mutation.describe()} error_type={mutation.failure.error_type}")
        print(f"pending: {len(ledger)}")
        return EXIT_OK

    store = _open_store(dry_run=False)
    try:
        result = await RepairPass(store, config=config.repair).run(ledger)
    finally:
        await store.aclose()

    _print_repair_summary(result)
    if args.ledger_out is not None:
        result.unresolved_ledger().dump(args.ledger_out)
    return EXIT_OK if result.resolved else EXIT_UNRESOLVED


def main(argv: list[str] | None = None) -> int:
    """Run the ``octograph`` command line.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        Exit code: 0 on success, 1 when shards or mutations remain failed
        or the graph store rejects a request outside the upload protocol,
        2 when configuration or the ledger file is unusable.

    """
    args = _build_parser().parse_args(argv)
    try:
        config = OctographConfig.from_env()
    except OctographConfigError as exc:
        print(exc)
        return EXIT_CONFIG_ERROR
    _configure_logging(config)

    try:
        if args.command == "ingest":
            return asyncio.run(_ingest(args, config))
        try:
            ledger = RepairLedger.load(args.ledger)
        except (OSError, msgspec.DecodeError) as exc:
            print(f"Could not read ledger {args.ledger}: {exc}")
            return EXIT_CONFIG_ERROR
        return asyncio.run(_repair(args, config, ledger))
    except (GraphStoreConfigError, OctographConfigError) as exc:
        print(exc)
        return EXIT_CONFIG_ERROR
    except GraphStoreError as exc:
        print(f"graph store failure: {exc}")
        return EXIT_UNRESOLVED


if __name__ == "__main__":
    raise SystemExit(main())
