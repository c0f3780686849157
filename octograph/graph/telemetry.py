"""Throughput accounting for graph uploads.

:class:`Telemetry` accumulates vertex and edge counts together with the
resource units the store charged for them. :class:`ProgressReporter` renders
those counters as a single, continuously overwritten terminal line.

Usage
-----
>>> telemetry = Telemetry()
>>> telemetry.start()
>>> telemetry.record_vertex(2.5)
>>> telemetry.snapshot().vertices
1

"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import sys
import threading
import typing as typ

from octograph.common.time import monotonic

if typ.TYPE_CHECKING:
    import types

_DEFAULT_INTERVAL_S = 1.0
# Trailing blanks overwrite leftovers from a longer previous line.
_LINE_PADDING = " " * 16


@dataclasses.dataclass(frozen=True, slots=True)
class TelemetrySnapshot:
    """Point-in-time copy of the upload counters."""

    vertices: int
    edges: int
    consumption: float
    elapsed_s: float

    @property
    def rate(self) -> float:
        """Resource units consumed per second of elapsed wall time."""
        if self.elapsed_s <= 0:
            return 0.0
        return self.consumption / self.elapsed_s


class Telemetry:
    """Thread-safe counters for one pipeline run."""

    def __init__(self, *, clock: typ.Callable[[], float] = monotonic) -> None:
        """Create zeroed counters using ``clock`` for elapsed time."""
        self._clock = clock
        self._lock = threading.Lock()
        self._vertices = 0
        self._edges = 0
        self._consumption = 0.0
        self._started_at: float | None = None

    def start(self) -> None:
        """Mark the start of the timed phase; later calls are ignored."""
        with self._lock:
            if self._started_at is None:
                self._started_at = self._clock()

    def record_vertex(self, cost: float) -> None:
        """Count one created vertex and its resource charge."""
        with self._lock:
            self._vertices += 1
            self._consumption += cost

    def record_edge(self, cost: float) -> None:
        """Count one created edge and its resource charge."""
        with self._lock:
            self._edges += 1
            self._consumption += cost

    def snapshot(self) -> TelemetrySnapshot:
        """Return a consistent copy of the counters."""
        with self._lock:
            elapsed = (
                0.0 if self._started_at is None else self._clock() - self._started_at
            )
            return TelemetrySnapshot(
                vertices=self._vertices,
                edges=self._edges,
                consumption=self._consumption,
                elapsed_s=elapsed,
            )


def format_progress(snapshot: TelemetrySnapshot) -> str:
    """Render the progress line shown to operators."""
    return (
        f"Vertices: {snapshot.vertices} Edges: {snapshot.edges} "
        f"RU/s: {snapshot.rate:.2f}"
    )


class ProgressReporter:
    """Periodically rewrite a progress line until explicitly stopped.

    The refresh loop runs as its own asyncio task, independent of the upload
    workers. :meth:`stop` cancels it and writes one final newline-terminated
    line, so the last thing printed always reflects the final counters.
    """

    def __init__(
        self,
        telemetry: Telemetry,
        *,
        interval_s: float = _DEFAULT_INTERVAL_S,
        stream: typ.TextIO | None = None,
    ) -> None:
        """Bind the reporter to ``telemetry`` and an output stream."""
        if interval_s <= 0:
            msg = f"interval_s must be positive, got: {interval_s}"
            raise ValueError(msg)
        self._telemetry = telemetry
        self._interval_s = interval_s
        self._stream = stream
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """Whether the refresh task is active."""
        return self._task is not None and not self._task.done()

    def _write(self, text: str) -> None:
        stream = self._stream if self._stream is not None else sys.stdout
        stream.write(text)
        stream.flush()

    async def _refresh(self) -> None:
        while True:
            snapshot = self._telemetry.snapshot()
            self._write(f"\r{format_progress(snapshot)}{_LINE_PADDING}")
            await asyncio.sleep(self._interval_s)

    def start(self) -> None:
        """Start the refresh task on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._refresh(), name="octograph-progress")

    async def stop(self) -> TelemetrySnapshot:
        """Cancel the refresh task and print the final counters."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        final = self._telemetry.snapshot()
        self._write(f"\r{format_progress(final)}{_LINE_PADDING}\n")
        return final

    async def __aenter__(self) -> ProgressReporter:
        """Start reporting on entry."""
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: types.TracebackType | None,
    ) -> None:
        """Stop reporting on exit."""
        await self.stop()
