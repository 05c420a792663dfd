"""Unit identifier resolution, row policies and unit ordering."""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Mapping
from enum import Enum
from typing import Any

from aerator_report import AGGREGATE_ROW_MARKERS, UNIT_KEYS
from aerator_report.classify import cell_text

_DIGITS_RE = re.compile(r"(\d+)")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")


class UnitPolicy(str, Enum):
    """How rows without a usable unit identifier are handled.

    ``exclude-aggregates``
        Automatic load: skip rows with no identifier or a summary/footer
        identifier (``Total``, ``Subtotal`` …) and keep going.
    ``stop-at-blank``
        Hand-picked unit column: the first blank identifier ends the data.
    ``skip-blank``
        Hand-picked unit column: blank identifiers are skipped, nothing else.
    """

    EXCLUDE_AGGREGATES = "exclude-aggregates"
    STOP_AT_BLANK = "stop-at-blank"
    SKIP_BLANK = "skip-blank"


def default_policy(unit_column: str | None) -> UnitPolicy:
    return UnitPolicy.SKIP_BLANK if unit_column else UnitPolicy.EXCLUDE_AGGREGATES


# ── Row validation ──────────────────────────────────────────────


def _present(value: Any) -> bool:
    return cell_text(value) != ""


def find_unit_value(row: Mapping[str, Any]) -> str | None:
    """Return the trimmed unit identifier of *row*, or ``None``.

    Well-known keys are tried first, then any column whose name mentions
    ``unit``.
    """
    for key in UNIT_KEYS:
        if key in row and _present(row[key]):
            return cell_text(row[key]).strip()

    for key, value in row.items():
        if "unit" in str(key).lower() and _present(value):
            return cell_text(value).strip()

    return None


def is_valid_unit(value: str | None) -> bool:
    """False for blank identifiers and spreadsheet summary rows."""
    if value is None or not value.strip():
        return False
    lowered = value.strip().lower()
    return not any(marker in lowered for marker in AGGREGATE_ROW_MARKERS)


def unit_from_column(row: Mapping[str, Any], unit_column: str) -> str:
    return cell_text(row.get(unit_column)).strip()


# ── Ordering ────────────────────────────────────────────────────


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def natural_key(text: str) -> tuple[tuple[int, int, str], ...]:
    """Numeric-aware, case- and accent-insensitive key.

    Digit runs compare by value and sort before letters.
    """
    parts: list[tuple[int, int, str]] = []
    for chunk in _DIGITS_RE.split(_fold(text.strip())):
        if not chunk:
            continue
        if chunk.isdecimal():
            parts.append((0, int(chunk), ""))
        else:
            parts.append((1, 0, chunk))
    return tuple(parts)


def parse_unit_int(unit: str) -> int | None:
    text = unit.strip()
    if not _INTEGER_RE.match(text):
        return None
    return int(text)


def unit_sort_key(unit: str) -> tuple[tuple[tuple[int, int, str], ...], str]:
    """Total ordering for unit identifiers.

    Integer identifiers order numerically; anything else falls back to
    natural ordering. The raw string breaks ties (``"007"`` vs ``"7"``).
    """
    number = parse_unit_int(unit)
    if number is not None:
        return ((0, number, ""),), unit
    return natural_key(unit), unit


def compare_units(a: str, b: str) -> int:
    key_a, key_b = unit_sort_key(a), unit_sort_key(b)
    if key_a < key_b:
        return -1
    if key_a > key_b:
        return 1
    return 0


def sort_units(units: list[str]) -> list[str]:
    return sorted(units, key=unit_sort_key)
