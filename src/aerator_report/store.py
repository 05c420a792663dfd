"""Key/value artifact store: JSON blobs handed between pipeline stages."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from aerator_report.io import write_json
from aerator_report.models import ConsolidatedUnit, CustomerInfo, InstallationRecord

RAW_INSTALLATION_DATA = "raw_installation_data"
CONSOLIDATED_DATA = "consolidated_data"
INSTALLATION_DATA = "installation_data"
TOILET_COUNT = "toilet_count"
TOILET_COUNT_BY_UNIT = "toilet_count_by_unit"
SELECTED_NOTES_COLUMNS = "selected_notes_columns"
SELECTED_CELLS = "selected_cells"
UNIFIED_NOTES = "unified_notes"
CUSTOMER_INFO = "customer_info"

_KEY_RE = re.compile(r"^[a-z0-9_]+$")


class ArtifactStore:
    """A directory of ``<key>.json`` files."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid store key: {key!r}")
        return self.directory / f"{key}.json"

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def save(self, key: str, data: Any) -> Path:
        return write_json(self._path(key), data)

    def load(self, key: str, default: Any = None) -> Any:
        path = self._path(key)
        if not path.is_file():
            return default
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Corrupt store entry {path}: {exc}") from exc

    # ── Typed accessors ─────────────────────────────────────────

    def save_units(self, units: list[ConsolidatedUnit]) -> Path:
        return self.save(CONSOLIDATED_DATA, [u.to_dict() for u in units])

    def load_units(self) -> list[ConsolidatedUnit]:
        data = self.load(CONSOLIDATED_DATA, [])
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise ValueError(f"Corrupt store entry {CONSOLIDATED_DATA!r}: expected a list of units")
        return [ConsolidatedUnit.from_dict(item) for item in data]

    def load_notes(self) -> dict[str, str]:
        data = self.load(UNIFIED_NOTES, {})
        if not isinstance(data, dict):
            raise ValueError(f"Corrupt store entry {UNIFIED_NOTES!r}: expected an object")
        return {str(k): str(v) for k, v in data.items()}

    def load_customer(self) -> CustomerInfo:
        return CustomerInfo.from_dict(self.load(CUSTOMER_INFO, {}))

    def load_installation(self) -> list[InstallationRecord]:
        data = self.load(INSTALLATION_DATA, [])
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise ValueError(f"Corrupt store entry {INSTALLATION_DATA!r}: expected a list of rows")
        return [InstallationRecord.from_dict(item) for item in data]
