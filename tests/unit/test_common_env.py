"""Unit tests for environment variable parsing helpers."""

from __future__ import annotations

import pytest

from octograph.common.env import (
    parse_optional_str,
    parse_positive_float,
    parse_positive_int,
)

_VAR = "OCTOGRAPH_TEST_VALUE"


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_parse_positive_int_uses_default_when_unset(
    monkeypatch: pytest.MonkeyPatch, raw: str | None
) -> None:
    """Unset or blank variables fall back to the default."""
    if raw is None:
        monkeypatch.delenv(_VAR, raising=False)
    else:
        monkeypatch.setenv(_VAR, raw)
    assert parse_positive_int(_VAR, 32) == 32


def test_parse_positive_int_reads_value(monkeypatch: pytest.MonkeyPatch) -> None:
    """A positive integer is returned as-is."""
    monkeypatch.setenv(_VAR, "4")
    assert parse_positive_int(_VAR, 32) == 4


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ("0", "must be positive"),
        ("-3", "must be positive"),
        ("many", "must be an integer"),
        ("1.5", "must be an integer"),
    ],
)
def test_parse_positive_int_rejects_bad_values(
    monkeypatch: pytest.MonkeyPatch, raw: str, message: str
) -> None:
    """Non-positive and malformed integers raise ValueError naming the var."""
    monkeypatch.setenv(_VAR, raw)
    with pytest.raises(ValueError, match=message) as excinfo:
        parse_positive_int(_VAR, 32)
    assert _VAR in str(excinfo.value)


def test_parse_positive_float_reads_value(monkeypatch: pytest.MonkeyPatch) -> None:
    """Decimal values are accepted."""
    monkeypatch.setenv(_VAR, "0.25")
    assert parse_positive_float(_VAR, 1.0) == pytest.approx(0.25)


@pytest.mark.parametrize("raw", ["0", "-1.0", "soon"])
def test_parse_positive_float_rejects_bad_values(
    monkeypatch: pytest.MonkeyPatch, raw: str
) -> None:
    """Zero, negative, and malformed numbers raise ValueError."""
    monkeypatch.setenv(_VAR, raw)
    with pytest.raises(ValueError, match=_VAR):
        parse_positive_float(_VAR, 1.0)


def test_parse_optional_str_treats_blank_as_unset(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Blank strings read as None; others are stripped."""
    monkeypatch.setenv(_VAR, "  ")
    assert parse_optional_str(_VAR) is None
    monkeypatch.setenv(_VAR, " secret ")
    assert parse_optional_str(_VAR) == "secret"
