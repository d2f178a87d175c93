from datetime import datetime
from typing import Any


def format_number(value: Any) -> str:
    """Thousands-separated number; ``None`` and non-numbers render as 0."""
    if isinstance(value, bool):
        return "0"
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return "0"
    if number.is_integer():
        return f"{int(number):,}"
    return f"{number:,.3f}".rstrip("0").rstrip(".")


def format_optional(value: Any) -> str:
    return "-" if value is None else format_number(value)


def format_time(timestamp: Any) -> str:
    """Local time for a unix timestamp, or ``-`` when absent."""
    if timestamp in (None, ""):
        return "-"
    try:
        return datetime.fromtimestamp(int(timestamp)).strftime("%Y-%m-%d %I:%M:%S %p")
    except (TypeError, ValueError, OverflowError, OSError):
        return "-"


def short_hash(value: str | None, size: int = 12) -> str:
    if not value:
        return "-"
    if len(value) <= size * 2:
        return value
    return f"{value[:size]}…{value[-4:]}"
