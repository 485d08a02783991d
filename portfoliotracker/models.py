"""Record shapes for the five collections, plus seed defaults.

Timestamps are naive UTC datetimes, which is what DuckDB ``TIMESTAMP``
columns hand back.

"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

# Collection names (also the DuckDB table names)
PORTFOLIOS = "portfolios"
HOLDINGS = "holdings"
CATEGORIES = "categories"
TICKER_MEMORY = "ticker_memory"
SETTINGS = "settings"

# ── Currencies ──

BASE_CURRENCY = "USD"
CURRENCIES: tuple[str, ...] = ("USD", "AUD", "BTC")

THEMES: tuple[str, ...] = ("dark", "light")

MAX_TICKER_LENGTH = 10

SETTINGS_ID = "settings"


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime."""
    return datetime.now(tz=UTC).replace(tzinfo=None)


def normalize_ticker(ticker: str) -> str:
    """Trim and uppercase a ticker symbol."""
    return ticker.strip().upper()


@dataclass
class Portfolio:
    """A named group of holdings."""

    id: str
    name: str
    created_at: datetime
    updated_at: datetime


@dataclass
class Holding:
    """Current position in one asset inside one portfolio.

    Attributes:
        id: Opaque unique identifier.
        portfolio_id: Owning portfolio.
        ticker: Normalized uppercase symbol.
        quantity: Units held, always > 0.
        avg_cost: Cost per unit in ``currency``, always >= 0.
        currency: One of ``CURRENCIES``.
        category_id: Assigned category.
        created_at: Creation time (naive UTC).
        updated_at: Last modification time (naive UTC).

    """

    id: str
    portfolio_id: str
    ticker: str
    quantity: float
    avg_cost: float
    currency: str
    category_id: str
    created_at: datetime
    updated_at: datetime


@dataclass
class Category:
    """A tag for holdings. Default categories are protected from deletion."""

    id: str
    name: str
    color: str
    is_default: bool = False


@dataclass
class TickerMemory:
    ticker: str
    category_id: str


@dataclass
class Settings:
    """The single application settings record.

    ``exchange_rates`` maps each currency to units per one unit of
    ``BASE_CURRENCY``; the base currency's own rate is always 1.
    """

    id: str = SETTINGS_ID
    display_currency: str = BASE_CURRENCY
    theme: str = "dark"
    exchange_rates: dict[str, float] = field(default_factory=dict)
    last_rate_update: datetime | None = None


MODELS: dict[str, type] = {
    PORTFOLIOS: Portfolio,
    HOLDINGS: Holding,
    CATEGORIES: Category,
    TICKER_MEMORY: TickerMemory,
    SETTINGS: Settings,
}

# ── Seed data ──

DEFAULT_EXCHANGE_RATES: dict[str, float] = {
    "USD": 1.0,
    "AUD": 1.55,
    "BTC": 0.000024,
}

# (name, colour) pairs, seeded once in this order
DEFAULT_CATEGORIES: list[tuple[str, str]] = [
    ("Crypto", "#F7931A"),
    ("Stock", "#4CAF50"),
    ("ETF", "#2196F3"),
    ("Bond", "#9C27B0"),
    ("Cash", "#607D8B"),
    ("Real Estate", "#795548"),
    ("Commodities", "#FFD700"),
    ("Options", "#E91E63"),
]

# Colour given to categories created implicitly (e.g. by CSV import)
CUSTOM_CATEGORY_COLOR = "#9E9E9E"


def default_settings() -> Settings:
    """Build the settings record written on first run."""
    return Settings(
        id=SETTINGS_ID,
        display_currency=BASE_CURRENCY,
        theme="dark",
        exchange_rates=dict(DEFAULT_EXCHANGE_RATES),
        last_rate_update=None,
    )
