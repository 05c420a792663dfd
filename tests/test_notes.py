from __future__ import annotations

import pytest

from aerator_report.models import InstallationRecord
from aerator_report.notes import (
    build_notes_map,
    cell_annotation,
    parse_cell_key,
    parse_cell_ref,
    select_cells,
)

ROWS = [
    {"Unit": "101", "Comments": "Leak"},
    {"Unit": "102", "Comments": "Drip"},
]


def test_cell_annotation_format() -> None:
    assert cell_annotation("101", "Comments", "Leak") == "Unit 101: Comments = Leak"
    assert cell_annotation(7.0, "Toilet", 1) == "Unit 7: Toilet = 1"


def test_select_cells_keys_by_row_and_column() -> None:
    selected = select_cells(ROWS, "Unit", [(1, "Comments")])

    assert selected == {"1-Comments": "Unit 102: Comments = Drip"}


def test_select_cells_rejects_out_of_range_rows() -> None:
    with pytest.raises(IndexError, match="out of range"):
        select_cells(ROWS, "Unit", [(5, "Comments")])


def test_parse_cell_ref() -> None:
    assert parse_cell_ref("3:Comments") == (3, "Comments")
    assert parse_cell_ref(" 0 : Shower Head ") == (0, "Shower Head")
    with pytest.raises(ValueError, match="ROW:COLUMN"):
        parse_cell_ref("x:Comments")
    with pytest.raises(ValueError, match="ROW:COLUMN"):
        parse_cell_ref("Comments")


def test_parse_cell_key_keeps_dashes_in_column() -> None:
    assert parse_cell_key("2-Sink-Left") == (2, "Sink-Left")
    with pytest.raises(ValueError):
        parse_cell_key("Sink")


def test_build_notes_map_joins_in_row_order() -> None:
    records = [
        InstallationRecord(unit="101", row_index=3, notes="second"),
        InstallationRecord(unit="102", row_index=1, notes=""),
        InstallationRecord(unit="101", row_index=0, notes="first"),
    ]

    assert build_notes_map(records) == {"101": "first second"}


def test_parse_cell_ref_rejects_non_decimal_row() -> None:
    with pytest.raises(ValueError, match="ROW:COLUMN"):
        parse_cell_ref("፩:Comments")
