"""Spot prices and exchange rates via Yahoo Finance.

This adapter sits outside the core: the store and valuation engine
never call it. The UI (or a scheduled refresh) calls it with an explicit
``timeout`` and hands the resulting rate table to
``set_exchange_rates``.

Note:
    yfinance uses an unofficial Yahoo Finance API. Rate limiting
    and respectful request patterns are required.

    yfinance is an optional dependency (install with ``pip install
    portfoliotracker[market]``). Functions raise ``ImportError`` at call
    time if the library is not installed.

"""

from __future__ import annotations

import logging
from typing import Any

from portfoliotracker.db.record_store import RecordStore
from portfoliotracker.db.settings_store import set_exchange_rates
from portfoliotracker.models import BASE_CURRENCY, CURRENCIES, Settings, normalize_ticker

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

# Tickers quoted as <TICKER>-USD pairs rather than equities
CRYPTO_TICKERS: frozenset[str] = frozenset(
    {
        "BTC", "ETH", "SOL", "ADA", "DOT", "DOGE", "XRP", "AVAX", "MATIC", "LINK",
        "UNI", "ATOM", "LTC", "BCH", "XLM", "ALGO", "FIL", "NEAR", "APT", "ARB", "OP",
    }
)


def _require_yfinance() -> tuple[Any, Any]:
    """Lazy-import yfinance and pandas.

    Returns:
        Tuple of (yfinance module, pandas module).

    Raises:
        ImportError: If yfinance is not installed.

    """
    try:
        import pandas as pd
        import yfinance as yf
    except ImportError as exc:
        msg = (
            "yfinance is required for Yahoo Finance data. "
            "Install with: pip install portfoliotracker[market]"
        )
        raise ImportError(msg) from exc
    return yf, pd


def is_crypto_ticker(ticker: str) -> bool:
    return normalize_ticker(ticker) in CRYPTO_TICKERS


def yahoo_symbol(ticker: str) -> str:
    """Yahoo symbol for a ticker: ``BTC`` -> ``BTC-USD``, ``AAPL`` unchanged."""
    normalized = normalize_ticker(ticker)
    if normalized in CRYPTO_TICKERS:
        return f"{normalized}-USD"
    return normalized


def _last_close(yf: Any, symbol: str, timeout: float) -> float | None:
    """Most recent close for ``symbol`` over the last few sessions."""
    df = yf.Ticker(symbol).history(period="5d", interval="1d", timeout=timeout)
    if df is None or df.empty:
        return None
    closes = df["Close"].dropna()
    if closes.empty:
        return None
    return float(closes.iloc[-1])


def fetch_current_price(ticker: str, timeout: float = DEFAULT_TIMEOUT) -> dict[str, Any]:
    """Fetch the latest USD price for a ticker.

    Lookup failures are reported in the result rather than raised, so a
    form can show "price unavailable" without special handling.

    Args:
        ticker: Ticker symbol; crypto tickers are quoted against USD.
        timeout: Request timeout in seconds.

    Returns:
        Dict with keys: price (float or None), currency ("USD"), and
        error (str or None).

    Raises:
        ImportError: If yfinance is not installed.

    """
    normalized = normalize_ticker(ticker)
    if not normalized:
        return {"price": None, "currency": BASE_CURRENCY, "error": "No ticker provided"}

    yf, _pd = _require_yfinance()
    symbol = yahoo_symbol(normalized)
    try:
        price = _last_close(yf, symbol, timeout)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Price lookup for %s failed: %s", symbol, exc)
        return {"price": None, "currency": BASE_CURRENCY, "error": "Network error"}

    if price is None:
        logger.warning("No price data for %s", symbol)
        return {"price": None, "currency": BASE_CURRENCY, "error": "Price not found"}
    return {"price": price, "currency": BASE_CURRENCY, "error": None}


def fetch_exchange_rates(
    currencies: tuple[str, ...] = CURRENCIES,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict[str, float]:
    """Fetch units of each currency per one USD.

    Fiat currencies use Yahoo's ``<CCY>=X`` pairs (already quoted per
    USD); crypto currencies use ``<CCY>-USD`` and are inverted.

    Args:
        currencies: Currencies to fetch.
        timeout: Request timeout in seconds, per request.

    Returns:
        Rate table including ``USD: 1.0``.

    Raises:
        ValueError: If a rate cannot be obtained.
        ImportError: If yfinance is not installed.

    """
    yf, _pd = _require_yfinance()
    rates: dict[str, float] = {BASE_CURRENCY: 1.0}

    for currency in currencies:
        if currency == BASE_CURRENCY:
            continue
        if currency in CRYPTO_TICKERS:
            price = _last_close(yf, f"{currency}-USD", timeout)
            rate = 1.0 / price if price else None
        else:
            rate = _last_close(yf, f"{currency}=X", timeout)
        if not rate:
            msg = f"No exchange rate available for {currency}"
            raise ValueError(msg)
        rates[currency] = rate

    return rates


def refresh_exchange_rates(
    store: RecordStore,
    timeout: float = DEFAULT_TIMEOUT,
) -> Settings:
    """Fetch a fresh rate table and store it in the settings record."""
    rates = fetch_exchange_rates(timeout=timeout)
    logger.info("Fetched exchange rates for %s", sorted(rates))
    return set_exchange_rates(store, rates)
