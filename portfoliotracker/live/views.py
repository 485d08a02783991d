"""Ready-made query functions for ``LiveQueries.subscribe``.

Each factory returns a function of the store. Results are plain lists,
dicts and dataclasses so they compare by value between evaluations.
"""

from __future__ import annotations

from collections.abc import Iterable

from portfoliotracker.db.category_store import list_categories
from portfoliotracker.db.portfolio_store import (
    get_holdings,
    get_holdings_for_portfolios,
    list_portfolios,
)
from portfoliotracker.db.record_store import RecordStore
from portfoliotracker.db.settings_store import get_settings
from portfoliotracker.db.ticker_memory import ticker_memory_map
from portfoliotracker.live.queries import QueryFn
from portfoliotracker.models import Category, Holding, Portfolio, Settings
from portfoliotracker.portfolio.valuation import (
    PortfolioSummary,
    create_portfolio_summaries,
)


def portfolio_holdings(portfolio_id: str | None = None) -> QueryFn:
    """Holdings of one portfolio, or of every portfolio when None."""

    def query(store: RecordStore) -> list[Holding]:
        return get_holdings(store, portfolio_id)

    label = "*" if portfolio_id is None else portfolio_id
    query.__name__ = f"portfolio_holdings[{label}]"
    return query


def selected_holdings(portfolio_ids: Iterable[str]) -> QueryFn:
    """Holdings belonging to any of the selected portfolios."""
    ids = list(portfolio_ids)

    def query(store: RecordStore) -> list[Holding]:
        return get_holdings_for_portfolios(store, ids)

    query.__name__ = f"selected_holdings[{','.join(ids)}]"
    return query


def all_portfolios(store: RecordStore) -> list[Portfolio]:
    return list_portfolios(store)


def all_categories(store: RecordStore) -> list[Category]:
    return list_categories(store)


def ticker_memory(store: RecordStore) -> dict[str, str]:
    return ticker_memory_map(store)


def current_settings(store: RecordStore) -> Settings:
    return get_settings(store)


def portfolio_summaries(portfolio_ids: Iterable[str] | None = None) -> QueryFn:
    """Valued summaries of the selected (or all) portfolios.

    Valuation uses the display currency and rate table stored in the
    settings record at evaluation time, so a rate refresh re-prices the
    summaries.
    """
    ids = list(portfolio_ids) if portfolio_ids is not None else None

    def query(store: RecordStore) -> list[PortfolioSummary]:
        settings = get_settings(store)
        portfolios = list_portfolios(store)
        if ids is not None:
            portfolios = [p for p in portfolios if p.id in ids]
            holdings = get_holdings_for_portfolios(store, ids)
        else:
            holdings = get_holdings(store)
        return create_portfolio_summaries(
            portfolios,
            holdings,
            list_categories(store),
            settings.display_currency,
            settings.exchange_rates,
        )

    query.__name__ = "portfolio_summaries"
    return query
