"""CLI entry point for aerator-report."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table as RichTable

from aerator_report import __version__
from aerator_report.classify import Category, cell_text, classify_column, is_unit_column
from aerator_report.config import ReportConfig, load_config
from aerator_report.io import InputError, load_records, write_json
from aerator_report.models import ConsolidatedUnit, InstallationRecord, QCReport, RunManifest
from aerator_report.notes import build_notes_map, parse_cell_ref, select_cells
from aerator_report.pipeline import (
    build_installation_table,
    compute_summary,
    count_toilets,
    count_toilets_by_unit,
    detect_columns,
    run_consolidation,
    suggest_unit_column,
)
from aerator_report.report import write_report
from aerator_report.store import (
    CONSOLIDATED_DATA,
    CUSTOMER_INFO,
    INSTALLATION_DATA,
    RAW_INSTALLATION_DATA,
    SELECTED_CELLS,
    SELECTED_NOTES_COLUMNS,
    TOILET_COUNT,
    TOILET_COUNT_BY_UNIT,
    UNIFIED_NOTES,
    ArtifactStore,
)
from aerator_report.units import UnitPolicy
from aerator_report.utils import sha256_file, utcnow_iso, write_text

app = typer.Typer(
    name="areport",
    help="aerator-report: consolidate fixture-installation spreadsheets into unit reports.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()

STORE_DIRNAME = "store"


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logger = logging.getLogger("aerator_report")
    logger.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(RichHandler(console=console, show_path=False, markup=False))


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"aerator-report v{__version__}")
        raise typer.Exit()


def _write_manifest(
    out_dir: Path,
    input_file: Path,
    run_id: str,
    created_at: str,
    qc: QCReport,
    *,
    mode: str = "",
    status: str = "success",
    error_code: int | None = None,
    error_message: str = "",
) -> Path:
    sha256 = ""
    try:
        sha256 = sha256_file(input_file)
    except OSError:
        pass

    manifest = RunManifest(
        version=__version__,
        run_id=run_id,
        mode=mode,
        input_path=str(input_file.resolve()),
        output_dir=str(out_dir.resolve()),
        created_at_utc=created_at,
        rows_in=qc.rows_in,
        rows_out=qc.rows_out,
        unit_count=qc.unit_count,
        sha256=sha256,
        status=status,
        error_code=error_code,
        error_message=error_message,
    )
    return write_json(out_dir / "run_manifest.json", manifest.to_dict())


def _fail(
    out_dir: Path,
    input_file: Path,
    run_id: str,
    created_at: str,
    *,
    message: str,
    rows_in: int = 0,
    error_code: int = 2,
) -> typer.Exit:
    """Write QC + manifest for a failed run, report it, and return the exit."""
    qc = QCReport(rows_in=rows_in, rows_out=0, dropped_rows=rows_in, warnings=[message])
    qc_path = write_json(out_dir / "qc_report.json", qc.to_dict())
    manifest_path = _write_manifest(
        out_dir,
        input_file,
        run_id,
        created_at,
        qc,
        status="failed",
        error_code=error_code,
        error_message=message,
    )
    _err(message)
    console.print(f"  QC report -> {qc_path}")
    console.print(f"  Manifest  -> {manifest_path}")
    return typer.Exit(code=error_code)


def _summary_command(input_file: Path, out_dir: Path, config: ReportConfig) -> str:
    parts: list[str] = [
        "areport run",
        f"--input {input_file.name}",
        f"--out-dir {out_dir.name or str(out_dir)}",
    ]
    if config.unit_column:
        parts.append(f"--unit-column {config.unit_column!r}")
    for column in config.notes_columns:
        parts.append(f"--notes-column {column!r}")
    if config.policy is not None:
        parts.append(f"--policy {config.policy.value}")
    return " ".join(parts)


def _write_summary_artifact(
    *,
    out_dir: Path,
    input_file: Path,
    qc: QCReport,
    metrics: dict[str, Any],
    toilets_by_unit: dict[str, int],
    config: ReportConfig,
    max_warnings: int = 5,
) -> Path:
    lines: list[str] = [
        "aerator-report summary",
        f"tool_version: aerator-report v{__version__}",
        f"input_file: {input_file.name}",
        f"mode: {config.mode}",
        f"rows_in: {qc.rows_in}",
        f"rows_used: {qc.rows_out}",
        f"rows_dropped: {qc.dropped_rows}",
        f"warning_count: {len(qc.warnings)}",
    ]
    for idx, warning in enumerate(qc.warnings[:max_warnings], start=1):
        lines.append(f"warning_{idx}: {warning}")
    if len(qc.warnings) > max_warnings:
        lines.append(f"warning_more: {len(qc.warnings) - max_warnings}")

    for label, value in metrics.items():
        key = label.lower().replace(" ", "_")
        lines.append(f"total_{key}: {value}")
    lines.append(f"toilets_by_unit_total: {sum(toilets_by_unit.values())}")
    lines.append("command: " + _summary_command(input_file, out_dir, config))
    return write_text(out_dir / "summary.txt", "\n".join(lines) + "\n")


def _units_table(units: Sequence[ConsolidatedUnit], limit: int = 20) -> RichTable:
    tbl = RichTable(title="Consolidated Units", show_lines=False)
    tbl.add_column("Unit", style="bold")
    tbl.add_column("Kitchen", justify="right")
    tbl.add_column("Bathroom", justify="right")
    tbl.add_column("Shower", justify="right")
    for item in units[:limit]:
        tbl.add_row(
            item.unit,
            str(item.kitchen_aerator_count),
            str(item.bathroom_aerator_count),
            str(item.shower_head_count),
        )
    if len(units) > limit:
        tbl.caption = f"Showing first {limit} of {len(units)} units"
    return tbl


def _save_run(
    store: ArtifactStore,
    *,
    rows: list[dict[str, Any]],
    units: list[ConsolidatedUnit],
    installation: list[InstallationRecord],
    notes: dict[str, str],
    toilet_count: int,
    toilets_by_unit: dict[str, int],
    selected_cells: dict[str, str],
    config: ReportConfig,
) -> None:
    store.save(RAW_INSTALLATION_DATA, rows)
    store.save_units(units)
    store.save(INSTALLATION_DATA, [record.to_dict() for record in installation])
    store.save(TOILET_COUNT, toilet_count)
    store.save(TOILET_COUNT_BY_UNIT, toilets_by_unit)
    store.save(SELECTED_NOTES_COLUMNS, config.notes_columns)
    store.save(SELECTED_CELLS, selected_cells)
    store.save(UNIFIED_NOTES, notes)
    store.save(CUSTOMER_INFO, config.customer.to_dict())


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """aerator-report CLI."""


# ── run command ──────────────────────────────────────────────────


@app.command()
def run(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to CSV or XLSX input file.",
        exists=True, readable=True,
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for report, QC, manifest and stored data.",
    ),
    unit_column: str | None = typer.Option(
        None, "--unit-column", "-u",
        help="Column holding the unit identifier (switches to manual mode).",
    ),
    notes_columns: list[str] | None = typer.Option(
        None, "--notes-column", "-n",
        help="Column whose text is added to the unit notes (repeatable).",
    ),
    cells: list[str] | None = typer.Option(
        None, "--cell", "-c",
        help="Add a single cell to the notes as ROW:COLUMN (0-based row, repeatable).",
    ),
    policy: UnitPolicy | None = typer.Option(
        None, "--policy",
        help="Row policy: exclude-aggregates, stop-at-blank or skip-blank.",
    ),
    profile: Path | None = typer.Option(
        None, "--profile",
        help="Profile file with key=value lines (unit_column, notes_column, customer_name …).",
    ),
    customer_name: str | None = typer.Option(None, "--customer", help="Customer name."),
    property_name: str | None = typer.Option(None, "--property", help="Property name."),
    address: str | None = typer.Option(None, "--address", help="Property street address."),
    report_date: str | None = typer.Option(None, "--date", help="Date shown on the report."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log every installed fixture found during consolidation.",
    ),
) -> None:
    """Consolidate a fixture spreadsheet per unit and write the report."""
    echo = _printer(quiet)
    _configure_logging(verbose)
    created_at = utcnow_iso()
    run_id = created_at
    out_dir.mkdir(parents=True, exist_ok=True)
    try:
        config = load_config(
            profile,
            unit_column=unit_column,
            notes_columns=notes_columns,
            policy=policy,
            customer_overrides={
                "customer_name": customer_name,
                "property_name": property_name,
                "address": address,
                "date": report_date,
            },
        )
        cell_refs = [parse_cell_ref(ref) for ref in cells or []]
        if not config.unit_column and (config.notes_columns or cell_refs):
            raise ValueError("--notes-column and --cell need a unit column (--unit-column)")
    except ValueError as exc:
        raise _fail(out_dir, input_file, run_id, created_at, message=str(exc))

    if not quiet:
        console.print(Panel(
            f"[bold]aerator-report[/bold] v{__version__}\n"
            f"Input:  {input_file}\nOutput: {out_dir}",
            title="Pipeline Start", border_style="blue",
        ))
        if profile:
            console.print(f"  Using profile: {profile}")
        if config.unit_column:
            console.print(f"  Unit column: {config.unit_column!r} (manual mode)")
        else:
            console.print("  Unit column: auto-detect (automatic mode)")
        if config.notes_columns:
            console.print(f"  Notes columns: {', '.join(config.notes_columns)}")

    # ── Load ─────────────────────────────────────────────────────
    echo("[blue]>[/blue] Loading input file …")
    try:
        rows = load_records(input_file)
    except (InputError, OSError) as exc:
        raise _fail(out_dir, input_file, run_id, created_at, message=str(exc))

    columns = detect_columns(rows, sample_size=len(rows))
    echo(f"  {len(rows)} rows x {len(columns)} columns")

    try:
        if config.unit_column and config.unit_column not in columns:
            raise _fail(
                out_dir,
                input_file,
                run_id,
                created_at,
                message=(
                    f"Unit column {config.unit_column!r} not found. "
                    f"Available: {', '.join(columns)}"
                ),
                rows_in=len(rows),
            )
        missing_notes = [c for c in config.notes_columns if c not in columns]
        try:
            selected_cells = (
                select_cells(rows, config.unit_column, cell_refs) if config.unit_column else {}
            )
        except IndexError as exc:
            raise _fail(
                out_dir, input_file, run_id, created_at, message=str(exc), rows_in=len(rows)
            )

        # ── Consolidate ──────────────────────────────────────────
        echo("[blue]>[/blue] Consolidating units …")
        units, qc = run_consolidation(rows, config.unit_column, config.policy)
        if missing_notes:
            qc.warnings.append(f"Notes columns not found: {', '.join(missing_notes)}")

        installation: list[InstallationRecord] = []
        if config.unit_column:
            installation = build_installation_table(
                rows, config.unit_column, config.notes_columns, selected_cells
            )
        notes = build_notes_map(installation)
        toilet_count = count_toilets(rows)
        toilets_by_unit = count_toilets_by_unit(rows, config.unit_column, config.policy)

        if not quiet:
            for w in qc.warnings:
                console.print(f"  [yellow]![/yellow] {w}")
            console.print(f"  {qc.unit_count} units from {qc.rows_out} rows")
            if units:
                console.print(_units_table(units))

        # ── Persist ──────────────────────────────────────────────
        store = ArtifactStore(out_dir / STORE_DIRNAME)
        _save_run(
            store,
            rows=rows,
            units=units,
            installation=installation,
            notes=notes,
            toilet_count=toilet_count,
            toilets_by_unit=toilets_by_unit,
            selected_cells=selected_cells,
            config=config,
        )
        echo(f"  Store     -> {store.directory}")

        qc_path = write_json(out_dir / "qc_report.json", qc.to_dict())
        echo(f"  QC report -> {qc_path}")

        # ── Write report ─────────────────────────────────────────
        echo("[blue]>[/blue] Writing Final_Report.xlsx …")
        report_path = write_report(
            out_dir,
            units,
            notes=notes,
            installation=installation,
            toilet_count=toilet_count,
            customer=config.customer,
            qc=qc,
        )
        echo(f"  Report   -> {report_path}")

        manifest_path = _write_manifest(
            out_dir, input_file, run_id, created_at, qc, mode=config.mode
        )
        echo(f"  Manifest -> {manifest_path}")

        summary_path = _write_summary_artifact(
            out_dir=out_dir,
            input_file=input_file,
            qc=qc,
            metrics=compute_summary(units, toilet_count),
            toilets_by_unit=toilets_by_unit,
            config=config,
        )
        echo(f"  Summary  -> {summary_path}")

        if not quiet:
            console.print(Panel(
                f"[green]Done[/green]: {qc.unit_count} units -> {report_path}",
                title="Pipeline Complete", border_style="green",
            ))
    except typer.Exit:
        raise
    except Exception as exc:
        raise _fail(
            out_dir,
            input_file,
            run_id,
            created_at,
            message=f"Unexpected internal error: {exc}",
            rows_in=len(rows),
            error_code=1,
        )


# ── preview command ──────────────────────────────────────────────


@app.command()
def preview(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to CSV or XLSX input file.",
        exists=True, readable=True,
    ),
    max_rows: int = typer.Option(
        10, "--rows", "-r", min=0,
        help="Number of data rows to show.",
    ),
) -> None:
    """Show detected columns, their fixture category and the first rows."""
    try:
        rows = load_records(input_file)
    except (InputError, OSError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    columns = detect_columns(rows)
    suggested = suggest_unit_column(columns)

    tbl = RichTable(title=f"Columns ({len(columns)})", show_lines=False)
    tbl.add_column("Column", style="bold")
    tbl.add_column("Category")
    tbl.add_column("Unit?")
    tbl.add_column("Sample values")
    for column in columns:
        category = classify_column(column)
        samples = [cell_text(row.get(column)) for row in rows[:3]]
        samples = [s for s in samples if s]
        unit_flag = "[green]suggested[/green]" if column == suggested else (
            "yes" if is_unit_column(column) else ""
        )
        tbl.add_row(
            column,
            "" if category is Category.OTHER else category.value,
            unit_flag,
            ", ".join(samples),
        )
    console.print(tbl)

    if max_rows:
        data = RichTable(
            title=f"Data Preview ({len(rows)} rows, {len(columns)} columns)", show_lines=False
        )
        data.add_column("#", justify="right", style="dim")
        for column in columns:
            data.add_column(column, overflow="ellipsis", max_width=20)
        for idx, row in enumerate(rows[:max_rows]):
            data.add_row(str(idx), *(cell_text(row.get(c)) for c in columns))
        if len(rows) > max_rows:
            data.caption = f"Showing first {max_rows} rows of {len(rows)} total rows"
        console.print(data)

    if suggested:
        console.print(f"  Suggested unit column: [bold]{suggested}[/bold]")


# ── report command ───────────────────────────────────────────────


@app.command()
def report(
    store_dir: Path = typer.Option(
        ..., "--store", "-s",
        help="Store directory written by a previous 'run'.",
        exists=True, file_okay=False,
    ),
    out_dir: Path | None = typer.Option(
        None, "--out-dir", "-o",
        help="Where to write Final_Report.xlsx (default: the store's parent).",
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print the report path."),
) -> None:
    """Re-render the report from stored consolidated data and notes."""
    store = ArtifactStore(store_dir)
    target = out_dir or store_dir.resolve().parent
    if not store.exists(CONSOLIDATED_DATA):
        _err(f"No consolidated data found in {store_dir}")
        raise typer.Exit(code=2)
    try:
        units = store.load_units()
        notes = store.load_notes()
        installation = store.load_installation()
        customer = store.load_customer()
        toilet_count = store.load(TOILET_COUNT, 0)
        if not isinstance(toilet_count, int):
            raise ValueError(f"Corrupt store entry {TOILET_COUNT!r}: expected an integer")
    except (ValueError, TypeError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    report_path = write_report(
        target,
        units,
        notes=notes,
        installation=installation,
        toilet_count=toilet_count,
        customer=customer,
        qc=QCReport(unit_count=len(units)),
    )
    if not quiet:
        console.print(_units_table(units))
    console.print(f"  Report -> {report_path}")
