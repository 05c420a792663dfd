"""Excel report writer: produces Final_Report.xlsx."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, cast

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo
from openpyxl.worksheet.worksheet import Worksheet

from aerator_report.describe import NO_TOUCH
from aerator_report.models import ConsolidatedUnit, CustomerInfo, InstallationRecord, QCReport
from aerator_report.pipeline import (
    compute_installation_frame,
    compute_summary,
    compute_unit_details,
)

REPORT_FILENAME = "Final_Report.xlsx"

# ── Style constants ──────────────────────────────────────────────

HEADER_FONT = Font(name="Calibri", bold=True, size=11, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="3A7D44", end_color="3A7D44", fill_type="solid")
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)
CENTER_ALIGN = Alignment(horizontal="center", vertical="center")

TITLE_FONT = Font(name="Calibri", bold=True, size=14, color="3A7D44")
SUBTITLE_FONT = Font(name="Calibri", bold=False, size=10, color="808080")
LABEL_FONT = Font(name="Calibri", bold=True, size=11)
VALUE_FONT = Font(name="Calibri", size=11)
WARN_FONT = Font(name="Calibri", italic=True, size=10, color="CC6600")
NO_TOUCH_FONT = Font(name="Calibri", italic=True, size=11, color="808080")

NOTE_FILL = PatternFill(start_color="FFF2CC", end_color="FFF2CC", fill_type="solid")
KPI_FILL = PatternFill(start_color="DDEFD9", end_color="DDEFD9", fill_type="solid")

INT_FMT = '#,##0'

_MAX_COL_WIDTH = 40
_AUTO_WIDTH_SAMPLE_ROWS = 300
_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")


# ── Helpers ──────────────────────────────────────────────────────


def _style_header(ws: Worksheet, ncols: int) -> None:
    for c in range(1, ncols + 1):
        cell = ws.cell(row=1, column=c)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGN


def _auto_width(ws: Worksheet) -> None:
    max_row = min(ws.max_row, _AUTO_WIDTH_SAMPLE_ROWS + 1)
    for c_idx in range(1, ws.max_column + 1):
        values = (
            row[0].value
            for row in ws.iter_rows(min_row=1, max_row=max_row, min_col=c_idx, max_col=c_idx)
        )
        width = max((len(str(v or "")) for v in values), default=0) + 4
        ws.column_dimensions[get_column_letter(c_idx)].width = min(width, _MAX_COL_WIDTH)


def _table_name(ws: Worksheet, name: str) -> str:
    """An Excel-safe table name, unique within the workbook."""
    base = re.sub(r"[^A-Za-z0-9_]", "_", name) or "Table"
    if not re.match(r"^[A-Za-z_]", base):
        base = f"_{base}"
    base = base[:255]

    existing: set[str] = set()
    if ws.parent is not None:
        for sheet in ws.parent.worksheets:
            existing.update(cast(Iterable[str], sheet.tables.keys()))

    candidate, suffix = base, 0
    while candidate in existing:
        suffix += 1
        tail = f"_{suffix}"
        candidate = f"{base[: 255 - len(tail)]}{tail}"
    return candidate


def _add_excel_table(ws: Worksheet, name: str, ncols: int, nrows: int) -> None:
    """Turn the data range into a proper Excel Table object."""
    if nrows < 1 or ncols < 1:
        return
    ref = f"A1:{get_column_letter(ncols)}{nrows + 1}"
    table = Table(displayName=_table_name(ws, name), ref=ref)
    table.tableStyleInfo = TableStyleInfo(
        name="TableStyleMedium7", showFirstColumn=True,
        showLastColumn=False, showRowStripes=True, showColumnStripes=False,
    )
    ws.add_table(table)


def _excel_value(val: Any) -> Any:
    """Blank out missing values and neutralise formula-like text."""
    try:
        if pd.isna(val):
            return None
    except (TypeError, ValueError):
        return str(val)

    if isinstance(val, pd.Timestamp):
        val = val.to_pydatetime()
    if isinstance(val, datetime) and val.tzinfo:
        return val.replace(tzinfo=None)

    if isinstance(val, str):
        if val.startswith("'"):
            return val
        stripped = val.lstrip()
        if stripped and stripped[0] in _EXCEL_FORMULA_PREFIXES:
            return f"'{val}"

    return val


def _df_to_sheet(wb: Workbook, name: str, df: pd.DataFrame) -> Worksheet:
    ws = wb.create_sheet(title=name)
    col_names = [str(c) for c in df.columns]

    if not col_names or df.empty:
        ws.cell(row=1, column=1, value="No data").font = VALUE_FONT
        ws.column_dimensions["A"].width = 18
        return ws

    for c_idx, col_name in enumerate(col_names, 1):
        ws.cell(row=1, column=c_idx, value=col_name)
    for r_idx, row_vals in enumerate(df.itertuples(index=False, name=None), 2):
        for c_idx, val in enumerate(row_vals, 1):
            ws.cell(row=r_idx, column=c_idx, value=_excel_value(val))
    _style_header(ws, len(col_names))
    ws.freeze_panes = "B2"
    _auto_width(ws)
    _add_excel_table(ws, name, len(col_names), len(df))
    return ws


def _style_unit_details(ws: Worksheet) -> None:
    """Centre the fixture columns and grey out untouched fixtures."""
    if ws.max_row < 2:
        return
    for row in ws.iter_rows(min_row=2, max_row=ws.max_row, min_col=2, max_col=7):
        for cell in row:
            cell.alignment = CENTER_ALIGN
            if cell.value == NO_TOUCH:
                cell.font = NO_TOUCH_FONT


def _fill_row(ws: Worksheet, row: int, fill: PatternFill) -> None:
    for c in range(1, 5):
        ws.cell(row=row, column=c).fill = fill


def _write_summary(
    wb: Workbook,
    metrics: dict[str, Any],
    qc: QCReport,
    customer: CustomerInfo,
    title: str,
) -> None:
    ws = wb.create_sheet(title="Summary")

    # ── Title ────────────────────────────────────────────────────
    ws.cell(row=1, column=1, value=title).font = TITLE_FONT
    ws.merge_cells("A1:D1")
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    ws.cell(row=2, column=1, value=f"Generated {generated}").font = SUBTITLE_FONT
    ws.merge_cells("A2:D2")

    row = 4
    # ── Customer block ───────────────────────────────────────────
    customer_lines = customer.lines()
    if customer_lines:
        for line in customer_lines:
            ws.cell(row=row, column=1, value=_excel_value(line)).font = VALUE_FONT
            ws.merge_cells(f"A{row}:D{row}")
            row += 1
        row += 1

    # ── Notes block (from QC) ────────────────────────────────────
    ws.cell(row=row, column=1, value="Notes").font = LABEL_FONT
    ws.merge_cells(f"A{row}:D{row}")
    _fill_row(ws, row, NOTE_FILL)
    row += 1
    ws.cell(row=row, column=1, value=f"Rows in: {qc.rows_in}")
    ws.cell(row=row, column=2, value=f"Rows used: {qc.rows_out}")
    ws.cell(row=row, column=3, value=f"Dropped: {qc.dropped_rows}")
    _fill_row(ws, row, NOTE_FILL)
    row += 1
    if qc.warnings:
        for warn in qc.warnings:
            ws.cell(row=row, column=1, value=f"⚠ {_excel_value(warn)}").font = WARN_FONT
            _fill_row(ws, row, NOTE_FILL)
            row += 1
    else:
        ws.cell(row=row, column=1, value="No warnings").font = VALUE_FONT
        _fill_row(ws, row, NOTE_FILL)
        row += 1

    # ── Fixture totals ───────────────────────────────────────────
    row += 1
    ws.cell(row=row, column=1, value="Installations").font = LABEL_FONT
    ws.merge_cells(f"A{row}:D{row}")
    _fill_row(ws, row, KPI_FILL)
    row += 1

    for label, value in metrics.items():
        lbl_cell = ws.cell(row=row, column=1, value=label)
        lbl_cell.font = LABEL_FONT
        lbl_cell.fill = KPI_FILL
        val_cell = ws.cell(row=row, column=2, value=value)
        val_cell.font = VALUE_FONT
        val_cell.fill = KPI_FILL
        val_cell.number_format = INT_FMT
        val_cell.alignment = Alignment(horizontal="right")
        row += 1

    ws.column_dimensions["A"].width = 22
    ws.column_dimensions["B"].width = 22
    ws.column_dimensions["C"].width = 18
    ws.column_dimensions["D"].width = 18


# ── Public API ───────────────────────────────────────────────────


def write_report(
    out_dir: Path,
    units: Sequence[ConsolidatedUnit],
    *,
    notes: dict[str, str] | None = None,
    installation: Sequence[InstallationRecord] | None = None,
    toilet_count: int = 0,
    customer: CustomerInfo | None = None,
    qc: QCReport | None = None,
    title: str = "Water Fixture Installation Report",
) -> Path:
    """Write ``Final_Report.xlsx`` into *out_dir* and return the path."""
    if qc is None:
        qc = QCReport(unit_count=len(units))
    if customer is None:
        customer = CustomerInfo()

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / REPORT_FILENAME

    wb = Workbook()
    active_sheet = wb.active
    if active_sheet is not None:
        wb.remove(active_sheet)

    _write_summary(wb, compute_summary(units, toilet_count), qc, customer, title)

    details_ws = _df_to_sheet(wb, "Unit_Details", compute_unit_details(units, notes))
    _style_unit_details(details_ws)

    _df_to_sheet(wb, "Installation_Data", compute_installation_frame(installation or []))

    tmp_path = out_dir / "Final_Report.tmp.xlsx"
    wb.save(tmp_path)
    tmp_path.replace(report_path)
    return report_path
