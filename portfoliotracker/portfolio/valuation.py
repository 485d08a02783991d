"""Valuation engine.

Converts holding cost bases into a display currency and produces the
grouped, percentage-weighted views shown on the dashboard (by category,
by currency, by asset). Everything here is a pure function of the
holdings and the rate table passed in; nothing touches the store.

Rates are expressed as units of each currency per one unit of the base
currency (USD), so the base currency's own rate is 1 and is never
looked up or divided by.

A holding's value is its cost basis (``quantity * avg_cost``) converted
to the display currency. There is no live pricing feed, so "value" and
"cost" coincide until one is added.

"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Mapping, Sequence
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from portfoliotracker.errors import MissingRateError
from portfoliotracker.models import BASE_CURRENCY, Category, Holding, Portfolio

Rates = Mapping[str, float]


@dataclass
class CategoryGroup:
    """Holdings sharing a category.

    Attributes:
        category_id: The grouping key.
        category: Resolved category, or None if the id is stale.
        holdings: Members of the group.
        total: Converted value of the group.
        percentage: Share of the overall total (0-100).

    """

    category_id: str
    category: Category | None
    holdings: list[Holding] = field(default_factory=list)
    total: float = 0.0
    percentage: float = 0.0


@dataclass
class CurrencyGroup:
    """Holdings denominated in the same currency."""

    currency: str
    holdings: list[Holding] = field(default_factory=list)
    total: float = 0.0
    percentage: float = 0.0


@dataclass
class AssetGroup:
    """Holdings of the same ticker across portfolios.

    ``total_quantity`` is only meaningful because every member shares
    the ticker; quantities are never summed across tickers.
    """

    ticker: str
    holdings: list[Holding] = field(default_factory=list)
    total: float = 0.0
    percentage: float = 0.0
    total_quantity: float = 0.0


@dataclass
class EnrichedHolding:
    """A holding with its display-ready numbers.

    Attributes:
        holding: The stored holding.
        total_cost: ``quantity * avg_cost`` in the holding's own currency.
        total_value: Cost basis converted to the display currency.
        percentage_of_portfolio: Share of the set's total value (0-100).
        category: Resolved category, or None if the reference is stale.

    """

    holding: Holding
    total_cost: float
    total_value: float
    percentage_of_portfolio: float
    category: Category | None = None


@dataclass
class PortfolioSummary:
    portfolio: Portfolio
    total_value: float
    holdings_count: int
    holdings: list[EnrichedHolding] = field(default_factory=list)


# ── conversion ──


def _rate(rates: Rates, currency: str) -> float:
    if currency == BASE_CURRENCY:
        return 1.0
    try:
        rate = float(rates[currency])
    except KeyError:
        raise MissingRateError(currency) from None
    if not rate > 0:
        msg = f"Exchange rate for {currency} must be > 0, got {rate}"
        raise ValueError(msg)
    return rate


def convert(amount: float, from_currency: str, to_currency: str, rates: Rates) -> float:
    """Convert ``amount`` between currencies, pivoting through the base.

    Args:
        amount: Amount in ``from_currency``.
        from_currency: Source currency.
        to_currency: Target currency.
        rates: Units of each currency per one base unit.

    Returns:
        The converted amount; ``amount`` itself when the currencies match.

    Raises:
        MissingRateError: If a non-base currency has no rate.

    """
    if from_currency == to_currency:
        return amount

    in_base = amount if from_currency == BASE_CURRENCY else amount / _rate(rates, from_currency)
    if to_currency == BASE_CURRENCY:
        return in_base
    return in_base * _rate(rates, to_currency)


def total_cost(holding: Holding) -> float:
    """Cost basis in the holding's own currency."""
    return holding.quantity * holding.avg_cost


def holding_value(holding: Holding, display_currency: str, rates: Rates) -> float:
    """Cost basis converted to ``display_currency``."""
    return convert(total_cost(holding), holding.currency, display_currency, rates)


def _holding_values(
    holdings: Sequence[Holding],
    display_currency: str,
    rates: Rates,
) -> NDArray[np.float64]:
    return np.fromiter(
        (holding_value(h, display_currency, rates) for h in holdings),
        dtype=np.float64,
        count=len(holdings),
    )


def total_value(holdings: Sequence[Holding], display_currency: str, rates: Rates) -> float:
    """Sum of every holding's converted cost basis.

    Raises:
        MissingRateError: If any holding's currency has no rate.

    """
    return float(_holding_values(holdings, display_currency, rates).sum())


def percentage_of(value: float, total: float) -> float:
    """``value`` as a percentage of ``total``; 0 when the total is 0."""
    if total == 0:
        return 0.0
    return value / total * 100.0


def holding_percentages(
    holdings: Sequence[Holding],
    display_currency: str,
    rates: Rates,
) -> dict[str, float]:
    """Map each holding id to its share of the set's total value."""
    values = _holding_values(holdings, display_currency, rates)
    total = float(values.sum())
    return {
        h.id: percentage_of(float(v), total)
        for h, v in zip(holdings, values, strict=True)
    }


# ── grouping ──


def _partition(
    holdings: Sequence[Holding],
    key: Callable[[Holding], Hashable],
) -> dict[Hashable, list[int]]:
    """Group holding indices by key, preserving first-seen key order."""
    parts: dict[Hashable, list[int]] = {}
    for i, holding in enumerate(holdings):
        parts.setdefault(key(holding), []).append(i)
    return parts


def group_by_category(
    holdings: Sequence[Holding],
    categories: Sequence[Category],
    display_currency: str,
    rates: Rates,
) -> dict[str, CategoryGroup]:
    """Partition holdings by category id.

    Holdings whose category cannot be resolved still form their own
    group (with ``category=None``) so the percentages always close to 100.

    Returns:
        ``{category_id: CategoryGroup}`` in first-seen order.

    """
    by_id = {c.id: c for c in categories}
    values = _holding_values(holdings, display_currency, rates)
    overall = float(values.sum())

    groups: dict[str, CategoryGroup] = {}
    for category_id, idx in _partition(holdings, lambda h: h.category_id).items():
        group_total = float(values[idx].sum())
        groups[str(category_id)] = CategoryGroup(
            category_id=str(category_id),
            category=by_id.get(str(category_id)),
            holdings=[holdings[i] for i in idx],
            total=group_total,
            percentage=percentage_of(group_total, overall),
        )
    return groups


def group_by_currency(
    holdings: Sequence[Holding],
    display_currency: str,
    rates: Rates,
) -> dict[str, CurrencyGroup]:
    """Partition holdings by their denomination currency."""
    values = _holding_values(holdings, display_currency, rates)
    overall = float(values.sum())

    groups: dict[str, CurrencyGroup] = {}
    for currency, idx in _partition(holdings, lambda h: h.currency).items():
        group_total = float(values[idx].sum())
        groups[str(currency)] = CurrencyGroup(
            currency=str(currency),
            holdings=[holdings[i] for i in idx],
            total=group_total,
            percentage=percentage_of(group_total, overall),
        )
    return groups


def group_by_asset(
    holdings: Sequence[Holding],
    display_currency: str,
    rates: Rates,
) -> dict[str, AssetGroup]:
    """Partition holdings by ticker and sum quantities per ticker."""
    values = _holding_values(holdings, display_currency, rates)
    quantities = np.fromiter(
        (h.quantity for h in holdings), dtype=np.float64, count=len(holdings)
    )
    overall = float(values.sum())

    groups: dict[str, AssetGroup] = {}
    for ticker, idx in _partition(holdings, lambda h: h.ticker).items():
        group_total = float(values[idx].sum())
        groups[str(ticker)] = AssetGroup(
            ticker=str(ticker),
            holdings=[holdings[i] for i in idx],
            total=group_total,
            percentage=percentage_of(group_total, overall),
            total_quantity=float(quantities[idx].sum()),
        )
    return groups


# ── enrichment ──


def enrich_holdings(
    holdings: Sequence[Holding],
    categories: Sequence[Category],
    display_currency: str,
    rates: Rates,
) -> list[EnrichedHolding]:
    """Attach cost, converted value, weight and category to each holding."""
    by_id = {c.id: c for c in categories}
    values = _holding_values(holdings, display_currency, rates)
    overall = float(values.sum())

    return [
        EnrichedHolding(
            holding=holding,
            total_cost=total_cost(holding),
            total_value=float(value),
            percentage_of_portfolio=percentage_of(float(value), overall),
            category=by_id.get(holding.category_id),
        )
        for holding, value in zip(holdings, values, strict=True)
    ]


def create_portfolio_summaries(
    portfolios: Sequence[Portfolio],
    holdings: Sequence[Holding],
    categories: Sequence[Category],
    display_currency: str,
    rates: Rates,
) -> list[PortfolioSummary]:
    """Build one summary per portfolio, weights relative to that portfolio."""
    summaries: list[PortfolioSummary] = []
    for portfolio in portfolios:
        members = [h for h in holdings if h.portfolio_id == portfolio.id]
        summaries.append(
            PortfolioSummary(
                portfolio=portfolio,
                total_value=total_value(members, display_currency, rates),
                holdings_count=len(members),
                holdings=enrich_holdings(members, categories, display_currency, rates),
            )
        )
    return summaries
