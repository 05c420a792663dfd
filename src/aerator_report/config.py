"""Run configuration: profile files and CLI overrides."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path

from aerator_report.models import CustomerInfo
from aerator_report.units import UnitPolicy

_CUSTOMER_KEYS = frozenset(f.name for f in fields(CustomerInfo))
_KNOWN_KEYS = frozenset({"unit_column", "notes_column", "policy"}) | _CUSTOMER_KEYS


@dataclass
class ReportConfig:
    """Which columns hold the unit and the notes, plus report header details."""

    unit_column: str | None = None
    notes_columns: list[str] = field(default_factory=list)
    policy: UnitPolicy | None = None
    customer: CustomerInfo = field(default_factory=CustomerInfo)

    @property
    def mode(self) -> str:
        return "manual" if self.unit_column else "automatic"


def read_profile_lines(profile: Path | None) -> list[str]:
    """Return the meaningful ``key=value`` lines of a profile file."""
    if not profile:
        return []
    if not profile.exists():
        raise ValueError(f"Profile not found: {profile} (expected lines like unit_column=Apt)")
    if profile.is_dir():
        raise ValueError(f"Profile is a directory, not a file: {profile}")
    try:
        text = profile.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read profile {profile}: {exc}") from exc

    lines: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        lines.append(stripped)
    return lines


def parse_profile(lines: list[str]) -> ReportConfig:
    """Parse ``key=value`` lines; ``notes_column`` may repeat."""
    config = ReportConfig()
    customer: dict[str, str] = {}
    for item in lines:
        if "=" not in item:
            raise ValueError(f"Invalid profile line: {item!r}  (expected key=value)")
        key, value = item.split("=", 1)
        key = key.strip().lower()
        value = value.strip()
        if not key:
            raise ValueError("Profile entries must have a non-empty key (key=value)")
        if key not in _KNOWN_KEYS:
            raise ValueError(
                f"Unknown profile key: {key!r}. Known keys: {', '.join(sorted(_KNOWN_KEYS))}"
            )
        if key == "unit_column":
            config.unit_column = value or None
        elif key == "notes_column":
            if value and value not in config.notes_columns:
                config.notes_columns.append(value)
        elif key == "policy":
            try:
                config.policy = UnitPolicy(value)
            except ValueError as exc:
                choices = ", ".join(p.value for p in UnitPolicy)
                raise ValueError(f"Invalid policy {value!r}. Use one of: {choices}") from exc
        else:
            customer[key] = value
    config.customer = CustomerInfo(**customer)
    return config


def load_config(
    profile: Path | None = None,
    *,
    unit_column: str | None = None,
    notes_columns: list[str] | None = None,
    policy: UnitPolicy | None = None,
    customer_overrides: dict[str, str | None] | None = None,
) -> ReportConfig:
    """Read *profile* (if any) and apply CLI overrides on top."""
    config = parse_profile(read_profile_lines(profile))
    if unit_column:
        config.unit_column = unit_column.strip()
    for column in notes_columns or []:
        column = column.strip()
        if column and column not in config.notes_columns:
            config.notes_columns.append(column)
    if policy is not None:
        config.policy = policy
    for key, value in (customer_overrides or {}).items():
        if key not in _CUSTOMER_KEYS:
            raise ValueError(f"Unknown customer field: {key!r}")
        if value:
            setattr(config.customer, key, value)
    if config.policy is UnitPolicy.STOP_AT_BLANK and not config.unit_column:
        raise ValueError("Policy 'stop-at-blank' requires a unit column")
    return config
