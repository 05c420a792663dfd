"""I/O helpers: load input spreadsheets as raw rows and write JSON artifacts."""

from __future__ import annotations

import csv
import json
import zipfile
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, cast

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from aerator_report.classify import cell_text


class InputError(ValueError):
    """The input table is missing, unreadable, headerless or empty."""


# ── Loading ──────────────────────────────────────────────────────

_SNIFF_DELIMITERS = ",;\t|"
_SNIFF_SAMPLE_CHARS = 64 * 1024


def _sniff_delimiter(path: Path, encoding: str) -> str:
    """Guess the CSV delimiter from the head of *path*; comma when unsure.

    Only real separators are candidates, so a one-column file stays whole.
    """
    with open(path, encoding=encoding, errors="strict", newline="") as fh:
        sample = fh.read(_SNIFF_SAMPLE_CHARS)
    try:
        return csv.Sniffer().sniff(sample, delimiters=_SNIFF_DELIMITERS).delimiter
    except csv.Error:
        return ","


def load_table(path: Path, delimiter: str | None = None) -> pd.DataFrame:
    """Load a CSV or Excel file (first sheet) and return a raw DataFrame.

    Raises
    ------
    InputError
        If *path* does not exist or is not a file, the extension is not
        supported, or decoding/parsing fails.
    """
    path = Path(path)
    if not path.exists():
        raise InputError(f"Input file not found: {path}")
    if not path.is_file():
        raise InputError(f"Input path is not a file: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        last_exc: Exception | None = None
        for encoding in ("utf-8-sig", "utf-8", "latin-1"):
            try:
                sep = delimiter or _sniff_delimiter(path, encoding)
                return pd.read_csv(
                    path,
                    dtype="string",
                    sep=sep,
                    engine="c",
                    encoding=encoding,
                    encoding_errors="strict",
                    keep_default_na=False,
                    skip_blank_lines=True,
                )
            except pd.errors.EmptyDataError as exc:
                raise InputError(f"Input file is empty: {path}") from exc
            except (UnicodeDecodeError, pd.errors.ParserError) as exc:
                last_exc = exc
        raise InputError(f"Could not read CSV {path} (decode or parse failed)") from last_exc

    read_excel = cast(Callable[..., pd.DataFrame], getattr(pd, "read_excel"))
    if suffix in (".xlsx", ".xlsm", ".xltx", ".xltm"):
        try:
            return read_excel(path, engine="openpyxl", dtype=object, sheet_name=0)
        except (ValueError, OSError, KeyError, zipfile.BadZipFile, InvalidFileException) as exc:
            raise InputError(f"Could not read workbook {path}: {exc}") from exc

    if suffix == ".xls":
        try:
            return read_excel(path, engine="xlrd", dtype=object, sheet_name=0)
        except ImportError as exc:
            raise InputError(
                "Unsupported .xls input unless 'xlrd' is installed. "
                "Either convert to .xlsx or add dependency: pip install xlrd"
            ) from exc
        except (ValueError, OSError) as exc:
            raise InputError(f"Could not read workbook {path}: {exc}") from exc

    raise InputError(f"Unsupported file type: {suffix!r}. Use .csv, .xlsx, or .xls")


def _header_name(name: object) -> str:
    text = str(name).strip()
    if text.startswith("Unnamed:"):
        return ""
    return text


def records_from_frame(df: pd.DataFrame) -> list[dict[str, Any]]:
    """Turn *df* into raw rows: ``{column: value}`` in original row order.

    Columns without a header are dropped, missing cells become ``""`` and
    rows with no values at all are skipped.

    Raises
    ------
    InputError
        If there is no named column or no data row.
    """
    headers = [_header_name(c) for c in df.columns]
    keep = [(pos, name) for pos, name in enumerate(headers) if name]
    if not keep:
        raise InputError("Input has no header row (no named columns)")

    rows: list[dict[str, Any]] = []
    for values in df.itertuples(index=False, name=None):
        row: dict[str, Any] = {}
        for pos, name in keep:
            value = values[pos]
            text = cell_text(value)
            # openpyxl hands back numbers; keep them, blank out NaN
            row[name] = value if text and not isinstance(value, str) else text
        if any(cell_text(v).strip() for v in row.values()):
            rows.append(row)

    if not rows:
        raise InputError("Input file has 0 rows.")
    return rows


def load_records(path: Path, delimiter: str | None = None) -> list[dict[str, Any]]:
    """Load *path* and return its raw rows (see :func:`records_from_frame`)."""
    return records_from_frame(load_table(path, delimiter=delimiter))


# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path
