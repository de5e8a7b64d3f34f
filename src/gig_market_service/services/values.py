"""Value checks and formatting shared by the marketplace services."""

from __future__ import annotations

import math
from datetime import UTC, datetime


def now_iso() -> str:
    """Return current UTC time as ISO 8601 string with Z suffix."""
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def is_positive_amount(value: object) -> bool:
    """Check if value is a finite number greater than zero (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        as_float = float(value)
    except OverflowError:
        return False
    return math.isfinite(as_float) and as_float > 0


def format_amount(value: float) -> str:
    """Render an amount for people: whole numbers without decimals, otherwise two places."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"
