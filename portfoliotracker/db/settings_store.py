"""Settings data store: display currency, theme and exchange rates."""

from __future__ import annotations

import logging
from datetime import datetime

from portfoliotracker.db.record_store import RecordStore
from portfoliotracker.errors import NotFoundError
from portfoliotracker.models import (
    BASE_CURRENCY,
    CURRENCIES,
    SETTINGS,
    SETTINGS_ID,
    THEMES,
    Settings,
    utcnow,
)

logger = logging.getLogger(__name__)


def get_settings(store: RecordStore) -> Settings:
    """Return the settings record.

    Raises:
        NotFoundError: If the store has not been initialized.

    """
    settings = store.get(SETTINGS, SETTINGS_ID)
    if settings is None:
        raise NotFoundError(SETTINGS, SETTINGS_ID)
    return settings


def set_display_currency(store: RecordStore, currency: str) -> Settings:
    if currency not in CURRENCIES:
        msg = f"currency must be one of {CURRENCIES}, got '{currency}'"
        raise ValueError(msg)
    with store.transaction():
        settings = get_settings(store)
        settings.display_currency = currency
        store.put(SETTINGS, settings)
    return settings


def set_theme(store: RecordStore, theme: str) -> Settings:
    if theme not in THEMES:
        msg = f"theme must be one of {THEMES}, got '{theme}'"
        raise ValueError(msg)
    with store.transaction():
        settings = get_settings(store)
        settings.theme = theme
        store.put(SETTINGS, settings)
    return settings


def toggle_theme(store: RecordStore) -> Settings:
    """Switch between the dark and light themes."""
    with store.transaction():
        settings = get_settings(store)
        return set_theme(store, "light" if settings.theme == "dark" else "dark")


def set_exchange_rates(
    store: RecordStore,
    rates: dict[str, float],
    updated_at: datetime | None = None,
) -> Settings:
    """Replace the exchange-rate table.

    Rates are units of each currency per one unit of ``BASE_CURRENCY``.
    The base rate is always stored as exactly 1.

    Args:
        store: Record store.
        rates: New rate table. Currencies outside ``CURRENCIES`` are kept
            as given; every rate must be a positive number.
        updated_at: Timestamp to record; defaults to now (naive UTC).

    Returns:
        The updated settings.

    Raises:
        ValueError: If a rate is not positive, or the base rate is given
            as anything other than 1.

    """
    table: dict[str, float] = {}
    for currency, rate in rates.items():
        value = float(rate)
        if not value > 0:
            msg = f"Exchange rate for {currency} must be > 0, got {rate}"
            raise ValueError(msg)
        table[currency] = value
    if table.get(BASE_CURRENCY, 1.0) != 1.0:
        msg = f"Base currency {BASE_CURRENCY} rate must be 1, got {table[BASE_CURRENCY]}"
        raise ValueError(msg)
    table[BASE_CURRENCY] = 1.0

    with store.transaction():
        settings = get_settings(store)
        settings.exchange_rates = table
        settings.last_rate_update = updated_at or utcnow()
        store.put(SETTINGS, settings)

    logger.info("Updated exchange rates: %s", table)
    return settings
