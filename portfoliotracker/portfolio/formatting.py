"""Display formatting for amounts, percentages, quantities and dates."""

from __future__ import annotations

import math
import re
from datetime import datetime

from portfoliotracker.models import utcnow

# currency -> (symbol, decimals)
_CURRENCY_FORMATS: dict[str, tuple[str, int]] = {
    "USD": ("$", 2),
    "AUD": ("A$", 2),
    "BTC": ("₿", 8),
}

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def currency_symbol(currency: str) -> str:
    return _CURRENCY_FORMATS[currency][0]


def format_number(value: float, decimals: int = 2) -> str:
    """Fixed decimals with thousands separators, e.g. ``1,234.50``."""
    return f"{value:,.{decimals}f}"


def format_compact_number(value: float, decimals: int = 2) -> str:
    """Abbreviate thousands, millions and billions as K, M and B."""
    magnitude = abs(value)
    sign = "-" if value < 0 else ""
    for threshold, suffix in ((1e9, "B"), (1e6, "M"), (1e3, "K")):
        if magnitude >= threshold:
            return f"{sign}{format_number(magnitude / threshold, decimals)}{suffix}"
    return format_number(value, decimals)


def format_currency(
    value: float,
    currency: str,
    *,
    show_symbol: bool = True,
    compact: bool = False,
    decimals: int | None = None,
) -> str:
    """Format an amount in ``currency``.

    Args:
        value: Amount to format.
        currency: One of USD, AUD, BTC.
        show_symbol: Prefix the currency symbol.
        compact: Abbreviate amounts of 1,000 and above.
        decimals: Override the currency's default decimals.

    Returns:
        e.g. ``"$1,234.56"``, ``"A$1.50K"``, ``"₿0.00100000"``.

    """
    symbol, default_decimals = _CURRENCY_FORMATS[currency]
    places = default_decimals if decimals is None else decimals

    if compact and abs(value) >= 1000:
        text = format_compact_number(value, places)
    else:
        text = format_number(value, places)
    return f"{symbol}{text}" if show_symbol else text


def format_percentage(value: float, decimals: int = 2) -> str:
    return f"{format_number(value, decimals)}%"


def format_quantity(value: float) -> str:
    """More decimals for fractional quantities (crypto), fewer for large ones."""
    if value < 0.001:
        return format_number(value, 8)
    if value < 1:
        return format_number(value, 6)
    if value < 100:
        return format_number(value, 4)
    return format_number(value, 2)


def format_date(value: datetime | str | None) -> str:
    """``"Jan 5, 2024"`` style date, ``"-"`` when missing."""
    if value is None or value == "":
        return "-"
    moment = datetime.fromisoformat(value) if isinstance(value, str) else value
    return f"{moment:%b} {moment.day}, {moment.year}"


def format_relative_time(value: datetime | str | None, now: datetime | None = None) -> str:
    """Coarse age such as ``"5m ago"``; falls back to the date after a week.

    Naive datetimes are taken to be UTC.
    """
    if value is None or value == "":
        return "-"
    moment = datetime.fromisoformat(value) if isinstance(value, str) else value
    reference = now or utcnow()
    seconds = math.floor((reference - moment).total_seconds())
    minutes, hours, days = seconds // 60, seconds // 3600, seconds // 86400

    if seconds < 60:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    return format_date(moment)


def parse_currency_string(value: str) -> float:
    """Strip symbols and separators and parse; unparseable input gives 0."""
    cleaned = _NON_NUMERIC.sub("", value)
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return f"{text[: max_length - 3]}..."
