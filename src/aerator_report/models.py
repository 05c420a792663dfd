"""Data models shared by the consolidation core, the store and the report."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, fields
from numbers import Integral
from typing import Any


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return normalized


@dataclass(frozen=True)
class ConsolidatedUnit:
    """Fixture-installation counts for one unit.

    Each count is the number of distinct columns of that category in which
    the unit had at least one installed value.
    """

    unit: str
    kitchen_aerator_count: int = 0
    bathroom_aerator_count: int = 0
    shower_head_count: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.unit, str) or not self.unit:
            raise ValueError("unit must be a non-empty string")
        for name in ("kitchen_aerator_count", "bathroom_aerator_count", "shower_head_count"):
            object.__setattr__(self, name, _to_non_negative_int(getattr(self, name), name))

    @property
    def touched(self) -> bool:
        return bool(
            self.kitchen_aerator_count or self.bathroom_aerator_count or self.shower_head_count
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "unit": self.unit,
            "kitchenAeratorCount": self.kitchen_aerator_count,
            "bathroomAeratorCount": self.bathroom_aerator_count,
            "showerHeadCount": self.shower_head_count,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ConsolidatedUnit:
        try:
            return cls(
                unit=data["unit"],
                kitchen_aerator_count=data.get("kitchenAeratorCount", 0),
                bathroom_aerator_count=data.get("bathroomAeratorCount", 0),
                shower_head_count=data.get("showerHeadCount", 0),
            )
        except KeyError as exc:
            raise ValueError(f"Consolidated unit is missing {exc.args[0]!r}") from exc


@dataclass
class InstallationRecord:
    """One row of the flat installation table (preview/export view)."""

    unit: str
    row_index: int
    values: dict[str, Any] = field(default_factory=dict)
    notes: str = ""

    def __post_init__(self) -> None:
        self.row_index = _to_non_negative_int(self.row_index, "row_index")

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"Unit": self.unit, "row_index": self.row_index}
        payload.update(
            {key: value for key, value in self.values.items() if key not in payload}
        )
        if self.notes:
            payload["Notes"] = self.notes
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> InstallationRecord:
        try:
            unit = str(data["Unit"])
            row_index = data["row_index"]
        except KeyError as exc:
            raise ValueError(f"Installation record is missing {exc.args[0]!r}") from exc
        values = {k: v for k, v in data.items() if k not in {"Unit", "row_index", "Notes"}}
        return cls(unit=unit, row_index=row_index, values=values, notes=str(data.get("Notes", "")))


@dataclass
class CustomerInfo:
    """Report header details; every field is optional."""

    customer_name: str = ""
    property_name: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    date: str = ""
    unit_type: str = ""

    def is_empty(self) -> bool:
        return not any(getattr(self, f.name) for f in fields(self))

    def to_dict(self) -> dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> CustomerInfo:
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{key: str(value) for key, value in data.items() if key in known})

    def lines(self) -> list[str]:
        """Human-readable header lines, skipping blanks."""
        out: list[str] = []
        if self.customer_name:
            out.append(f"Customer: {self.customer_name}")
        if self.property_name:
            out.append(f"Property: {self.property_name}")
        locality = " ".join(part for part in (self.state, self.zip) if part)
        address = ", ".join(part for part in (self.address, self.city, locality) if part)
        if address:
            out.append(f"Address: {address}")
        if self.date:
            out.append(f"Date: {self.date}")
        if self.unit_type:
            out.append(f"Unit type: {self.unit_type}")
        return out


@dataclass
class QCReport:
    """Quality-control report emitted alongside every run.

    Contract invariant: ``dropped_rows == rows_in - rows_out``.
    """

    rows_in: int = 0
    rows_out: int = 0
    dropped_rows: int = 0
    unit_count: int = 0
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        self.dropped_rows = _to_non_negative_int(self.dropped_rows, "dropped_rows")
        self.unit_count = _to_non_negative_int(self.unit_count, "unit_count")
        self.warnings = _to_string_list(self.warnings, "warnings")
        if self.rows_out > self.rows_in:
            raise ValueError("rows_out must be <= rows_in")
        expected_dropped = self.rows_in - self.rows_out
        if self.dropped_rows != expected_dropped:
            raise ValueError("dropped_rows must equal rows_in - rows_out")

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "dropped_rows": self.dropped_rows,
            "unit_count": self.unit_count,
            "warnings": list(self.warnings),
        }


@dataclass
class RunManifest:
    """Audit-trail manifest for a single run."""

    tool: str = "aerator-report"
    version: str = ""
    run_id: str = ""
    mode: str = ""
    input_path: str = ""
    output_dir: str = ""
    created_at_utc: str = ""
    rows_in: int = 0
    rows_out: int = 0
    unit_count: int = 0
    sha256: str = ""
    status: str = "success"
    error_code: int | None = None
    error_message: str = ""

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        self.unit_count = _to_non_negative_int(self.unit_count, "unit_count")
        if self.status not in {"success", "failed"}:
            raise ValueError("status must be 'success' or 'failed'")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "run_id": self.run_id,
            "mode": self.mode,
            "input_path": self.input_path,
            "output_dir": self.output_dir,
            "created_at_utc": self.created_at_utc,
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "unit_count": self.unit_count,
            "sha256": self.sha256,
            "status": self.status,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }
