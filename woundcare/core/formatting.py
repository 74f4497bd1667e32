"""Helpers for consistent user-facing date, money and percent formatting."""
from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable

DISPLAY_DATE_FORMAT = "%m/%d/%Y"
DISPLAY_DATETIME_FORMAT = "%m/%d/%Y %I:%M %p"
_STRING_PARSE_PATTERNS: Iterable[str] = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
)


def _coerce_to_datetime(value: Any) -> datetime | None:
    """Attempt to normalise incoming date-like values to a datetime."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            for pattern in _STRING_PARSE_PATTERNS:
                try:
                    return datetime.strptime(text, pattern)
                except ValueError:
                    continue
        return None
    return None


def format_display_date(value: Any) -> str:
    """Format a value as mm/dd/yyyy or return an empty string."""
    coerced = _coerce_to_datetime(value)
    if coerced is None:
        return "" if value in (None, "") else str(value)
    return coerced.strftime(DISPLAY_DATE_FORMAT)


def format_display_datetime(value: Any) -> str:
    coerced = _coerce_to_datetime(value)
    if coerced is None:
        return "" if value in (None, "") else str(value)
    return coerced.strftime(DISPLAY_DATETIME_FORMAT)


def format_iso_date(value: Any) -> str:
    """Format a value as YYYY-MM-DD, the layout used in CSV exports."""
    coerced = _coerce_to_datetime(value)
    if coerced is None:
        return ""
    return coerced.date().isoformat()


def _as_decimal(value: Any) -> Decimal:
    if value in (None, ""):
        return Decimal("0")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def format_currency(value: Any) -> str:
    """Render an amount as $x.xx; empty or unreadable values become $0.00."""
    amount = _as_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"${amount:.2f}"


def format_percent(value: Any) -> str:
    rate = _as_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{rate:.2f}%"


__all__ = [
    "format_currency",
    "format_display_date",
    "format_display_datetime",
    "format_iso_date",
    "format_percent",
]
