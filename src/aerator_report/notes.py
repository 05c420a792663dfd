"""Free-text notes: selected-cell annotations and the unit → note map."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from aerator_report.classify import cell_text
from aerator_report.models import InstallationRecord
from aerator_report.units import unit_from_column

NotesMap = dict[str, str]


def cell_annotation(unit: object, column: str, value: Any) -> str:
    return f"Unit {cell_text(unit)}: {column} = {cell_text(value)}"


def cell_key(row_index: int, column: str) -> str:
    return f"{row_index}-{column}"


def parse_cell_key(key: str) -> tuple[int, str]:
    """Split a ``"{row}-{column}"`` key; the column may itself contain dashes."""
    row, sep, column = key.partition("-")
    if not sep or not row.isdecimal() or not column:
        raise ValueError(f"Invalid cell key: {key!r} (expected row-column)")
    return int(row), column


def parse_cell_ref(ref: str) -> tuple[int, str]:
    """Parse a CLI ``ROW:COLUMN`` reference (row is 0-based)."""
    row, sep, column = ref.partition(":")
    row = row.strip()
    column = column.strip()
    if not sep or not row.isdecimal() or not column:
        raise ValueError(f"Invalid --cell value: {ref!r}  (expected ROW:COLUMN, e.g. 3:Comments)")
    return int(row), column


def select_cells(
    rows: Sequence[Mapping[str, Any]],
    unit_column: str,
    cells: Iterable[tuple[int, str]],
) -> dict[str, str]:
    """Annotate hand-picked cells, keyed ``"{row}-{column}"``."""
    selected: dict[str, str] = {}
    for row_index, column in cells:
        if row_index < 0 or row_index >= len(rows):
            raise IndexError(f"Row {row_index} is out of range (0..{len(rows) - 1})")
        row = rows[row_index]
        unit = unit_from_column(row, unit_column)
        selected[cell_key(row_index, column)] = cell_annotation(unit, column, row.get(column))
    return selected


def build_notes_map(records: Iterable[InstallationRecord]) -> NotesMap:
    """Join the notes of each unit's records, in row order."""
    collected: dict[str, list[str]] = {}
    for record in sorted(records, key=lambda r: r.row_index):
        if record.notes:
            collected.setdefault(record.unit, []).append(record.notes)
    return {unit: " ".join(parts) for unit, parts in collected.items()}
