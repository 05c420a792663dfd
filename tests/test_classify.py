from __future__ import annotations

import pandas as pd
import pytest

from aerator_report.classify import (
    Category,
    cell_text,
    classify_column,
    is_installed,
    is_toilet_column,
    is_toilet_installed,
    is_unit_column,
)


@pytest.mark.parametrize(
    ("column", "expected"),
    [
        ("Kitchen Faucet", Category.KITCHEN),
        ("KITCHEN", Category.KITCHEN),
        ("Bathroom Sink", Category.BATHROOM),
        ("Master Bath", Category.BATHROOM),
        ("Shower Head", Category.SHOWER),
        ("Notes", Category.OTHER),
        ("Toilet", Category.OTHER),
    ],
)
def test_classify_column_matches_by_substring(column: str, expected: Category) -> None:
    assert classify_column(column) is expected


def test_classify_column_first_match_wins() -> None:
    assert classify_column("Kitchen / Bath") is Category.KITCHEN
    assert classify_column("Bath Shower Combo") is Category.BATHROOM


def test_is_unit_column_hints() -> None:
    assert is_unit_column("Apt #")
    assert is_unit_column("Suite")
    assert is_unit_column("UNIT NUMBER")
    assert not is_unit_column("Kitchen Faucet")


def test_is_toilet_column() -> None:
    assert is_toilet_column("Toilet Flapper")
    assert is_toilet_column("WC")
    assert not is_toilet_column("Shower Head")


@pytest.mark.parametrize(
    "value",
    ["2 GPM", "1.5gpm", "X", "x", " Installed ", "yes", "male", "Female", "insert", "1", "2", 1, 2.0],
)
def test_is_installed_accepts_vocabulary(value: object) -> None:
    assert is_installed(value) is True


@pytest.mark.parametrize("value", ["no", "", "   ", "0", "3", "n/a", None, float("nan"), pd.NA, 0])
def test_is_installed_rejects_everything_else(value: object) -> None:
    assert is_installed(value) is False


def test_toilet_vocabulary_is_a_literal_subset() -> None:
    assert is_toilet_installed("YES")
    assert is_toilet_installed("x")
    assert is_toilet_installed(1)
    assert not is_toilet_installed("2")
    assert not is_toilet_installed("male")
    assert not is_toilet_installed("1.6 gpm")


def test_cell_text_renders_spreadsheet_numbers() -> None:
    assert cell_text(1.0) == "1"
    assert cell_text(1.5) == "1.5"
    assert cell_text(101) == "101"
    assert cell_text(None) == ""
    assert cell_text(float("nan")) == ""
    assert cell_text(" a ") == " a "
