"""Environment variable parsing shared by configuration objects."""

from __future__ import annotations

import os


def parse_positive_int(env_var: str, default: int) -> int:
    """Read a positive integer env var, falling back to ``default`` when unset."""
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        msg = f"{env_var} must be an integer, got: {raw!r}"
        raise ValueError(msg) from exc
    if value < 1:
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


def parse_positive_float(env_var: str, default: float) -> float:
    """Read a positive number env var, falling back to ``default`` when unset."""
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        msg = f"{env_var} must be a number, got: {raw!r}"
        raise ValueError(msg) from exc
    if value <= 0:
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


def parse_optional_str(env_var: str) -> str | None:
    """Read a string env var, treating blank values as unset."""
    raw = os.environ.get(env_var, "").strip()
    return raw or None
