"""Consolidation engine: groups raw rows by unit and counts fixtures.

Everything here is a pure function of its input table; persistence and
rendering live in :mod:`aerator_report.store` and :mod:`aerator_report.report`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import pandas as pd

from aerator_report.classify import (
    FIXTURE_CATEGORIES,
    Category,
    cell_text,
    classify_column,
    is_installed,
    is_toilet_column,
    is_toilet_installed,
    is_unit_column,
)
from aerator_report.describe import existing_fixture, installed_fixture
from aerator_report.models import ConsolidatedUnit, InstallationRecord, QCReport
from aerator_report.notes import NotesMap, parse_cell_key
from aerator_report.units import (
    UnitPolicy,
    default_policy,
    find_unit_value,
    is_valid_unit,
    natural_key,
    unit_from_column,
    unit_sort_key,
)

logger = logging.getLogger(__name__)

RawRow = Mapping[str, Any]

COLUMN_SAMPLE_ROWS = 50

DETAIL_COLUMNS: list[str] = [
    "Unit",
    "Existing Kitchen Aerator",
    "Installed Kitchen Aerator",
    "Existing Bathroom Aerator",
    "Installed Bathroom Aerator",
    "Existing Shower",
    "Installed Shower",
    "Notes",
]


# ── Columns ─────────────────────────────────────────────────────


def detect_columns(rows: Sequence[RawRow], sample_size: int = COLUMN_SAMPLE_ROWS) -> list[str]:
    """Union of the column names seen in the first *sample_size* rows, sorted."""
    columns: set[str] = set()
    for row in rows[:sample_size]:
        for key in row:
            name = str(key).strip()
            if name and name not in {"undefined", "null"}:
                columns.add(name)
    return sorted(columns)


def suggest_unit_column(columns: Sequence[str]) -> str | None:
    for column in columns:
        if is_unit_column(column):
            return column
    return columns[0] if columns else None


# ── Row selection ───────────────────────────────────────────────


def select_unit_rows(
    rows: Sequence[RawRow],
    unit_column: str | None = None,
    policy: UnitPolicy | None = None,
) -> tuple[list[tuple[int, str, RawRow]], list[str]]:
    """Resolve each row's unit and apply *policy*.

    Returns ``([(row_index, unit, row), ...], warnings)``.
    """
    policy = policy or default_policy(unit_column)
    kept: list[tuple[int, str, RawRow]] = []
    warnings: list[str] = []
    excluded: list[str] = []
    blank = 0

    for idx, row in enumerate(rows):
        if unit_column:
            unit: str | None = unit_from_column(row, unit_column) or None
        else:
            unit = find_unit_value(row)

        if policy is UnitPolicy.STOP_AT_BLANK:
            if not unit:
                ignored = len(rows) - idx
                logger.info(
                    "Stopping at row %d: blank unit. Processed %d rows.", idx + 1, len(kept)
                )
                warnings.append(
                    f"Stopped at row {idx + 1} (blank unit); {ignored} rows ignored"
                )
                break
        elif policy is UnitPolicy.EXCLUDE_AGGREGATES:
            if not unit:
                blank += 1
                continue
            if not is_valid_unit(unit):
                excluded.append(unit)
                continue
        elif not unit:
            blank += 1
            continue

        kept.append((idx, unit, row))

    if blank:
        warnings.append(f"Skipped {blank} rows with no unit identifier")
    if excluded:
        shown = ", ".join(repr(u) for u in excluded[:5])
        more = f" (+{len(excluded) - 5} more)" if len(excluded) > 5 else ""
        warnings.append(f"Excluded {len(excluded)} summary rows: {shown}{more}")
    return kept, warnings


# ── Consolidation ───────────────────────────────────────────────


def _consolidate_group(unit: str, rows: Iterable[RawRow]) -> ConsolidatedUnit:
    installed: dict[Category, set[str]] = {category: set() for category in FIXTURE_CATEGORIES}
    for row_index, row in enumerate(rows):
        for column, value in row.items():
            if not is_installed(value):
                continue
            category = classify_column(column)
            if category is Category.OTHER:
                continue
            installed[category].add(str(column))
            logger.debug(
                "Unit %s: %s fixture in row %d, column %r: %s",
                unit, category.value, row_index, column, cell_text(value),
            )

    result = ConsolidatedUnit(
        unit=unit,
        kitchen_aerator_count=len(installed[Category.KITCHEN]),
        bathroom_aerator_count=len(installed[Category.BATHROOM]),
        shower_head_count=len(installed[Category.SHOWER]),
    )
    logger.debug(
        "Unit %s totals - kitchen: %d, bathroom: %d, shower: %d",
        unit,
        result.kitchen_aerator_count,
        result.bathroom_aerator_count,
        result.shower_head_count,
    )
    return result


def run_consolidation(
    rows: Sequence[RawRow],
    unit_column: str | None = None,
    policy: UnitPolicy | None = None,
) -> tuple[list[ConsolidatedUnit], QCReport]:
    """Consolidate *rows* per unit and report what was kept.

    Returns ``(units, qc_report)``. An empty unit list is a valid result.
    """
    selected, warnings = select_unit_rows(rows, unit_column, policy)

    groups: dict[str, list[RawRow]] = {}
    for _idx, unit, row in selected:
        groups.setdefault(unit, []).append(row)
    logger.debug("Grouped %d rows into %d units", len(selected), len(groups))

    units = [_consolidate_group(unit, group) for unit, group in groups.items()]
    units.sort(key=lambda u: unit_sort_key(u.unit))

    if not units:
        warnings.append("No valid units found; the consolidated report is empty")

    qc = QCReport(
        rows_in=len(rows),
        rows_out=len(selected),
        dropped_rows=len(rows) - len(selected),
        unit_count=len(units),
        warnings=warnings,
    )
    return units, qc


def consolidate(
    rows: Sequence[RawRow],
    unit_column: str | None = None,
    policy: UnitPolicy | None = None,
) -> list[ConsolidatedUnit]:
    """Return one :class:`ConsolidatedUnit` per unit, sorted by unit.

    Without *unit_column* the unit is detected per row and summary rows
    (totals, averages …) are excluded; with it, blank units are skipped.
    """
    units, _qc = run_consolidation(rows, unit_column, policy)
    return units


# ── Installation table ──────────────────────────────────────────


def build_installation_table(
    rows: Sequence[RawRow],
    unit_column: str,
    notes_columns: Sequence[str] = (),
    selected_cells: Mapping[str, str] | None = None,
) -> list[InstallationRecord]:
    """Flat per-row view for a hand-picked unit column.

    Rows are read in order until the first blank unit. Notes combine the
    selected notes columns and any selected-cell annotations of the row.
    """
    notes_by_row: dict[int, list[str]] = {}
    for key, note in (selected_cells or {}).items():
        row_index, _column = parse_cell_key(key)
        notes_by_row.setdefault(row_index, []).append(note)

    selected, _warnings = select_unit_rows(rows, unit_column, UnitPolicy.STOP_AT_BLANK)

    records: list[InstallationRecord] = []
    for idx, unit, row in selected:
        parts = [cell_text(row.get(col)).strip() for col in notes_columns]
        parts = [part for part in parts if part]
        parts.extend(notes_by_row.get(idx, []))
        records.append(
            InstallationRecord(
                unit=unit,
                row_index=idx,
                values=dict(row),
                notes=" ".join(parts).strip(),
            )
        )

    records.sort(key=lambda r: natural_key(r.unit))
    return records


# ── Toilets ─────────────────────────────────────────────────────


def count_toilets(rows: Sequence[RawRow]) -> int:
    """Count installed-toilet cells across every row.

    Toilet columns are taken from the first row; each matching cell counts.
    """
    if not rows:
        return 0
    columns = [key for key in rows[0] if is_toilet_column(key)]
    return sum(1 for row in rows for col in columns if is_toilet_installed(row.get(col)))


def count_toilets_by_unit(
    rows: Sequence[RawRow],
    unit_column: str | None = None,
    policy: UnitPolicy | None = None,
) -> dict[str, int]:
    """Distinct toilet columns with an installed value, per unit."""
    selected, _warnings = select_unit_rows(rows, unit_column, policy)
    seen: dict[str, set[str]] = {}
    for _idx, unit, row in selected:
        columns = seen.setdefault(unit, set())
        for column, value in row.items():
            if is_toilet_column(column) and is_toilet_installed(value):
                columns.add(str(column))
    return {unit: len(seen[unit]) for unit in sorted(seen, key=unit_sort_key)}


# ── Report frames ───────────────────────────────────────────────


def compute_unit_details(
    units: Sequence[ConsolidatedUnit], notes: NotesMap | None = None
) -> pd.DataFrame:
    """Existing/installed fixture columns per unit, in unit order."""
    notes = notes or {}
    records = []
    for item in sorted(units, key=lambda u: unit_sort_key(u.unit)):
        records.append(
            {
                "Unit": item.unit,
                "Existing Kitchen Aerator": existing_fixture(item.kitchen_aerator_count, "kitchen"),
                "Installed Kitchen Aerator": installed_fixture(item.kitchen_aerator_count, "kitchen"),
                "Existing Bathroom Aerator": existing_fixture(
                    item.bathroom_aerator_count, "bathroom"
                ),
                "Installed Bathroom Aerator": installed_fixture(
                    item.bathroom_aerator_count, "bathroom"
                ),
                "Existing Shower": existing_fixture(item.shower_head_count, "shower"),
                "Installed Shower": installed_fixture(item.shower_head_count, "shower"),
                "Notes": notes.get(item.unit, ""),
            }
        )
    return pd.DataFrame(records, columns=DETAIL_COLUMNS)


def compute_installation_frame(records: Sequence[InstallationRecord]) -> pd.DataFrame:
    if not records:
        return pd.DataFrame()
    frame = pd.DataFrame([record.to_dict() for record in records])
    return frame.drop(columns=["row_index"])


def compute_summary(
    units: Sequence[ConsolidatedUnit], toilet_count: int = 0
) -> dict[str, Any]:
    """Top-level metrics for the Summary sheet."""
    return {
        "Units": len(units),
        "Units Touched": sum(1 for u in units if u.touched),
        "Kitchen Aerators": sum(u.kitchen_aerator_count for u in units),
        "Bathroom Aerators": sum(u.bathroom_aerator_count for u in units),
        "Shower Heads": sum(u.shower_head_count for u in units),
        "Toilets": int(toilet_count),
    }
