"""Tests for the ready-made live query functions."""

from __future__ import annotations

import pytest
from portfoliotracker.db.portfolio_store import create_holding, create_portfolio
from portfoliotracker.db.settings_store import set_display_currency, set_exchange_rates
from portfoliotracker.db.ticker_memory import remember_category
from portfoliotracker.live.queries import LiveQueries
from portfoliotracker.live.views import (
    all_categories,
    all_portfolios,
    current_settings,
    portfolio_holdings,
    portfolio_summaries,
    selected_holdings,
    ticker_memory,
)


class TestViews:
    """Direct evaluation of each view."""

    def test_portfolio_holdings_all(self, store, portfolio, stock):
        other = create_portfolio(store, "Other")
        a = create_holding(store, portfolio.id, "A", 1, 1.0, "USD", stock.id)
        b = create_holding(store, other.id, "B", 1, 1.0, "USD", stock.id)
        assert portfolio_holdings()(store) == [a, b]
        assert portfolio_holdings(other.id)(store) == [b]

    def test_selected_holdings(self, store, portfolio, stock):
        other = create_portfolio(store, "Other")
        create_holding(store, portfolio.id, "A", 1, 1.0, "USD", stock.id)
        b = create_holding(store, other.id, "B", 1, 1.0, "USD", stock.id)
        assert selected_holdings([other.id])(store) == [b]
        assert selected_holdings([])(store) == []

    def test_simple_views(self, store, portfolio, stock):
        remember_category(store, "AAPL", stock.id)
        assert all_portfolios(store) == [portfolio]
        assert len(all_categories(store)) == 8
        assert ticker_memory(store) == {"AAPL": stock.id}
        assert current_settings(store).theme == "dark"

    def test_query_names(self):
        assert portfolio_holdings("p1").__name__ == "portfolio_holdings[p1]"
        assert portfolio_holdings().__name__ == "portfolio_holdings[*]"


class TestPortfolioSummaries:
    """Tests for the valued summary view."""

    def test_values_in_display_currency(self, store, portfolio, stock):
        create_holding(store, portfolio.id, "AAPL", 10, 150.0, "USD", stock.id)
        create_holding(store, portfolio.id, "CBA", 10, 155.0, "AUD", stock.id)

        (summary,) = portfolio_summaries()(store)

        assert summary.portfolio == portfolio
        assert summary.holdings_count == 2
        assert summary.total_value == pytest.approx(1500.0 + 1000.0)

    def test_filters_selected_portfolios(self, store, portfolio, stock):
        other = create_portfolio(store, "Other")
        create_holding(store, other.id, "AAPL", 1, 1.0, "USD", stock.id)

        summaries = portfolio_summaries([other.id])(store)

        assert [s.portfolio.id for s in summaries] == [other.id]

    def test_rate_refresh_reprices_live_summary(self, store, portfolio, stock):
        create_holding(store, portfolio.id, "CBA", 10, 155.0, "AUD", stock.id)
        live = LiveQueries(store)
        totals = []
        live.subscribe(
            portfolio_summaries([portfolio.id]),
            on_result=lambda value: totals.append(value[0].total_value),
        )

        set_exchange_rates(store, {"USD": 1.0, "AUD": 1.24, "BTC": 0.000024})
        set_display_currency(store, "AUD")

        assert totals == pytest.approx([1000.0, 1250.0, 1550.0])
        live.close()
