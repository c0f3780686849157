"""Clock helpers."""

from __future__ import annotations

import datetime as dt
import time


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp for log events and run summaries."""
    return dt.datetime.now(dt.UTC)


def monotonic() -> float:
    """Return a monotonic clock reading in seconds for elapsed-time maths."""
    return time.monotonic()
