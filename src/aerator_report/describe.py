"""Fixture descriptions for the report."""

from __future__ import annotations

from aerator_report.classify import Category

NO_TOUCH = "No Touch."
SHOWER_RATING = "1.75 GPM"
AERATOR_RATING = "1.0 GPM"


def base_rating(fixture: Category | str) -> str:
    kind = fixture.value if isinstance(fixture, Category) else str(fixture).lower()
    return SHOWER_RATING if kind == Category.SHOWER.value else AERATOR_RATING


def describe(count: int, fixture: Category | str) -> str:
    """Describe *count* installations of *fixture*.

    >>> describe(0, "kitchen")
    'No Touch.'
    >>> describe(3, "kitchen")
    '1.0 GPM (3)'
    """
    if count == 0:
        return NO_TOUCH
    base = base_rating(fixture)
    if count == 1:
        return base
    return f"{base} ({count})"


def existing_fixture(count: int, fixture: Category | str) -> str:
    """Report cell for the fixture found in place: the rating, blank when untouched."""
    return "" if describe(count, fixture) == NO_TOUCH else base_rating(fixture)


def installed_fixture(count: int, fixture: Category | str) -> str:
    return describe(count, fixture)

