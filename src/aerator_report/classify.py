"""Column classification and cell interpretation: pure predicates."""

from __future__ import annotations

from enum import Enum
from typing import Any

import pandas as pd

from aerator_report import INSTALLED_TOKENS, TOILET_INSTALLED_TOKENS

_UNIT_COLUMN_HINTS = ("unit", "apt", "apartment", "room", "suite")
_TOILET_COLUMN_HINTS = ("toilet", "wc")


class Category(str, Enum):
    KITCHEN = "kitchen"
    BATHROOM = "bathroom"
    SHOWER = "shower"
    OTHER = "other"


FIXTURE_CATEGORIES: tuple[Category, ...] = (
    Category.KITCHEN,
    Category.BATHROOM,
    Category.SHOWER,
)


# ── Columns ──────────────────────────────────────────────────────


def classify_column(name: object) -> Category:
    """Return the fixture category a column belongs to.

    Checked in priority order, first match wins, so a column is counted
    under at most one category.
    """
    lowered = str(name).lower()
    if "kitchen" in lowered:
        return Category.KITCHEN
    if "bathroom" in lowered or "bath" in lowered:
        return Category.BATHROOM
    if "shower" in lowered:
        return Category.SHOWER
    return Category.OTHER


def is_unit_column(name: object) -> bool:
    lowered = str(name).lower()
    return any(hint in lowered for hint in _UNIT_COLUMN_HINTS)


def is_toilet_column(name: object) -> bool:
    lowered = str(name).lower()
    return any(hint in lowered for hint in _TOILET_COLUMN_HINTS)


# ── Cells ────────────────────────────────────────────────────────


def cell_text(value: Any) -> str:
    """Render a raw cell as text; missing values become ``""``.

    Integral floats drop their ``.0`` so a numeric ``1`` reads as ``"1"``.
    """
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        # array-likes have no single truth value
        return str(value)
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _normalize(value: Any) -> str:
    return cell_text(value).strip().lower()


def is_installed(value: Any) -> bool:
    """True when a cell signals an installed fixture."""
    token = _normalize(value)
    if not token:
        return False
    return token in INSTALLED_TOKENS or "gpm" in token


def is_toilet_installed(value: Any) -> bool:
    return _normalize(value) in TOILET_INSTALLED_TOKENS
