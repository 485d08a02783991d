"""Portfolio data store: CRUD for portfolios and their holdings.

These are the entry points the UI layer calls. They normalize and
validate input before anything reaches the record store, keep ticker
memory in step with category assignments, and run composite operations
(portfolio cascade delete) as one transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from portfoliotracker.db.record_store import RecordStore
from portfoliotracker.db.seed import generate_id
from portfoliotracker.db.ticker_memory import remember_category
from portfoliotracker.errors import NotFoundError
from portfoliotracker.models import (
    CURRENCIES,
    HOLDINGS,
    MAX_TICKER_LENGTH,
    PORTFOLIOS,
    Holding,
    Portfolio,
    normalize_ticker,
    utcnow,
)

logger = logging.getLogger(__name__)

_HOLDING_FIELDS = frozenset({"ticker", "quantity", "avg_cost", "currency", "category_id"})


@dataclass
class HoldingForm:
    """Raw holding input as entered in the add-holding form.

    Attributes:
        portfolio_id: Target portfolio.
        ticker: Ticker as typed (normalized on save).
        quantity: Units held.
        cost_type: "average" if ``cost_value`` is per unit, "total" if it
            is the total cost of the position.
        cost_value: Cost amount, interpreted per ``cost_type``.
        currency: Currency of ``cost_value``.
        category_id: Chosen category.

    """

    portfolio_id: str
    ticker: str
    quantity: float
    cost_type: str
    cost_value: float
    currency: str
    category_id: str


# ── validation ──


def _clean_portfolio_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        msg = "Portfolio name must be a non-empty string"
        raise ValueError(msg)
    return cleaned


def _clean_ticker(ticker: str) -> str:
    normalized = normalize_ticker(ticker)
    if not normalized:
        msg = "ticker must be a non-empty string"
        raise ValueError(msg)
    if len(normalized) > MAX_TICKER_LENGTH:
        msg = f"ticker must be at most {MAX_TICKER_LENGTH} characters, got '{normalized}'"
        raise ValueError(msg)
    return normalized


def _check_quantity(quantity: float) -> float:
    value = float(quantity)
    if not value > 0:
        msg = f"quantity must be > 0, got {quantity}"
        raise ValueError(msg)
    return value


def _check_avg_cost(avg_cost: float) -> float:
    value = float(avg_cost)
    if not value >= 0:
        msg = f"avg_cost must be >= 0, got {avg_cost}"
        raise ValueError(msg)
    return value


def _check_currency(currency: str) -> str:
    if currency not in CURRENCIES:
        msg = f"currency must be one of {CURRENCIES}, got '{currency}'"
        raise ValueError(msg)
    return currency


# ── portfolios ──


def create_portfolio(store: RecordStore, name: str) -> Portfolio:
    """Create an empty portfolio.

    Raises:
        ValueError: If the name is blank.

    """
    now = utcnow()
    portfolio = Portfolio(
        id=generate_id(),
        name=_clean_portfolio_name(name),
        created_at=now,
        updated_at=now,
    )
    store.put(PORTFOLIOS, portfolio)
    logger.info("Created portfolio %s (%s)", portfolio.name, portfolio.id)
    return portfolio


def update_portfolio(
    store: RecordStore,
    portfolio_id: str,
    name: str | None = None,
) -> Portfolio:
    """Rename a portfolio and bump its ``updated_at``.

    Raises:
        NotFoundError: If the portfolio does not exist.

    """
    with store.transaction():
        portfolio = store.get(PORTFOLIOS, portfolio_id)
        if portfolio is None:
            raise NotFoundError(PORTFOLIOS, portfolio_id)
        if name is not None:
            portfolio.name = _clean_portfolio_name(name)
        portfolio.updated_at = utcnow()
        store.put(PORTFOLIOS, portfolio)
    return portfolio


def delete_portfolio(store: RecordStore, portfolio_id: str) -> int:
    """Delete a portfolio together with all of its holdings.

    Returns:
        Number of holdings removed with the portfolio.

    Raises:
        NotFoundError: If the portfolio does not exist.

    """
    with store.transaction():
        if not store.exists(PORTFOLIOS, portfolio_id):
            raise NotFoundError(PORTFOLIOS, portfolio_id)
        removed = store.delete_where(HOLDINGS, portfolio_id=portfolio_id)
        store.delete(PORTFOLIOS, portfolio_id)

    logger.info("Deleted portfolio %s and %d holdings", portfolio_id, removed)
    return removed


def get_portfolio(store: RecordStore, portfolio_id: str) -> Portfolio | None:
    return store.get(PORTFOLIOS, portfolio_id)


def list_portfolios(store: RecordStore) -> list[Portfolio]:
    """All portfolios, newest first."""
    return store.all(PORTFOLIOS, order_by="-created_at")


# ── holdings ──


def create_holding(  # noqa: PLR0913
    store: RecordStore,
    portfolio_id: str,
    ticker: str,
    quantity: float,
    avg_cost: float,
    currency: str,
    category_id: str,
) -> Holding:
    """Create a holding and remember its category for the ticker.

    Args:
        store: Record store.
        portfolio_id: Owning portfolio (must exist).
        ticker: Ticker symbol; trimmed and uppercased.
        quantity: Units held, > 0.
        avg_cost: Cost per unit in ``currency``, >= 0.
        currency: One of ``CURRENCIES``.
        category_id: Category (must exist).

    Returns:
        The stored holding.

    Raises:
        ValueError: If any field is invalid.
        DanglingReferenceError: If the portfolio or category is missing.

    """
    now = utcnow()
    holding = Holding(
        id=generate_id(),
        portfolio_id=portfolio_id,
        ticker=_clean_ticker(ticker),
        quantity=_check_quantity(quantity),
        avg_cost=_check_avg_cost(avg_cost),
        currency=_check_currency(currency),
        category_id=category_id,
        created_at=now,
        updated_at=now,
    )
    with store.transaction():
        store.put(HOLDINGS, holding)
        remember_category(store, holding.ticker, holding.category_id)

    logger.info(
        "Created holding %s x%s in portfolio %s",
        holding.ticker,
        holding.quantity,
        portfolio_id,
    )
    return holding


def create_holding_from_form(store: RecordStore, form: HoldingForm) -> Holding:
    """Create a holding from form input, resolving total vs. average cost.

    Raises:
        ValueError: If ``cost_type`` is not "average" or "total", or any
            field is invalid.

    """
    if form.cost_type not in {"average", "total"}:
        msg = f"cost_type must be 'average' or 'total', got '{form.cost_type}'"
        raise ValueError(msg)
    quantity = _check_quantity(form.quantity)
    avg_cost = form.cost_value / quantity if form.cost_type == "total" else form.cost_value

    return create_holding(
        store,
        portfolio_id=form.portfolio_id,
        ticker=form.ticker,
        quantity=quantity,
        avg_cost=avg_cost,
        currency=form.currency,
        category_id=form.category_id,
    )


def update_holding(store: RecordStore, holding_id: str, **changes: Any) -> Holding:
    """Apply a partial update to a holding.

    Accepted fields: ticker, quantity, avg_cost, currency, category_id.
    A category change also updates the ticker memory for the holding's
    (possibly new) ticker.

    Raises:
        NotFoundError: If the holding does not exist.
        ValueError: If a field is unknown or invalid.
        DanglingReferenceError: If the new category is missing.

    """
    unknown = set(changes) - _HOLDING_FIELDS
    if unknown:
        msg = f"Cannot update holding fields: {sorted(unknown)}"
        raise ValueError(msg)

    with store.transaction():
        holding = store.get(HOLDINGS, holding_id)
        if holding is None:
            raise NotFoundError(HOLDINGS, holding_id)

        if changes.get("ticker") is not None:
            holding.ticker = _clean_ticker(changes["ticker"])
        if changes.get("quantity") is not None:
            holding.quantity = _check_quantity(changes["quantity"])
        if changes.get("avg_cost") is not None:
            holding.avg_cost = _check_avg_cost(changes["avg_cost"])
        if changes.get("currency") is not None:
            holding.currency = _check_currency(changes["currency"])
        category_changed = changes.get("category_id") is not None
        if category_changed:
            holding.category_id = changes["category_id"]
        holding.updated_at = utcnow()

        store.put(HOLDINGS, holding)
        if category_changed:
            remember_category(store, holding.ticker, holding.category_id)
    return holding


def delete_holding(store: RecordStore, holding_id: str) -> None:
    """Delete one holding.

    Raises:
        NotFoundError: If the holding does not exist.

    """
    store.delete(HOLDINGS, holding_id)
    logger.info("Deleted holding %s", holding_id)


def get_holding(store: RecordStore, holding_id: str) -> Holding | None:
    return store.get(HOLDINGS, holding_id)


def get_holdings(
    store: RecordStore,
    portfolio_id: str | None = None,
) -> list[Holding]:
    """Get holdings, optionally filtered by portfolio.

    Args:
        store: Record store.
        portfolio_id: Optional portfolio filter.

    Returns:
        Holdings in insertion order.

    """
    if portfolio_id is not None:
        return store.query(HOLDINGS, portfolio_id=portfolio_id)
    return store.all(HOLDINGS)


def get_holdings_for_portfolios(
    store: RecordStore,
    portfolio_ids: list[str],
) -> list[Holding]:
    """Get holdings belonging to any of ``portfolio_ids`` (empty list -> [])."""
    return store.query(HOLDINGS, portfolio_id=list(portfolio_ids))
