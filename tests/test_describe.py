from __future__ import annotations

import pytest

from aerator_report.classify import Category
from aerator_report.describe import (
    NO_TOUCH,
    describe,
    existing_fixture,
    installed_fixture,
)


@pytest.mark.parametrize("fixture", ["kitchen", "bathroom", "shower", Category.SHOWER])
def test_zero_count_is_no_touch(fixture: str) -> None:
    assert describe(0, fixture) == "No Touch."


def test_describe_uses_fixture_rating() -> None:
    assert describe(1, "shower") == "1.75 GPM"
    assert describe(1, "kitchen") == "1.0 GPM"
    assert describe(1, Category.BATHROOM) == "1.0 GPM"
    assert describe(3, "kitchen") == "1.0 GPM (3)"
    assert describe(2, "shower") == "1.75 GPM (2)"


def test_existing_fixture_is_blank_when_untouched() -> None:
    assert existing_fixture(0, "kitchen") == ""
    assert existing_fixture(2, "kitchen") == "1.0 GPM"
    assert existing_fixture(1, "shower") == "1.75 GPM"


def test_installed_fixture_passes_no_touch_through() -> None:
    assert installed_fixture(0, "shower") == NO_TOUCH
    assert installed_fixture(4, "bathroom") == "1.0 GPM (4)"

