"""aerator-report: consolidate fixture-installation spreadsheets into unit reports."""

__version__ = "0.2.0"

INSTALLED_TOKENS: frozenset[str] = frozenset(
    {"male", "female", "insert", "1", "2", "yes", "installed", "x"}
)
TOILET_INSTALLED_TOKENS: frozenset[str] = frozenset({"1", "yes", "installed", "x"})

UNIT_KEYS: tuple[str, ...] = ("unit", "Unit", "UNIT", "apt", "apartment", "room", "Room")

AGGREGATE_ROW_MARKERS: tuple[str, ...] = (
    "total",
    "sum",
    "average",
    "avg",
    "count",
    "header",
    "n/a",
    "na",
    "grand total",
    "subtotal",
    "summary",
    "totals",
    "grand",
    "sub total",
)
