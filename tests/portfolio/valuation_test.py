"""Tests for the valuation engine."""

from __future__ import annotations

from datetime import datetime

import pytest
from portfoliotracker.errors import MissingRateError
from portfoliotracker.models import Category, Holding, Portfolio
from portfoliotracker.portfolio.valuation import (
    convert,
    create_portfolio_summaries,
    enrich_holdings,
    group_by_asset,
    group_by_category,
    group_by_currency,
    holding_percentages,
    holding_value,
    percentage_of,
    total_cost,
    total_value,
)

RATES = {"USD": 1.0, "AUD": 1.55, "BTC": 0.000024}
T0 = datetime(2024, 1, 5)

STOCK = Category(id="c-stock", name="Stock", color="#4CAF50", is_default=True)
CRYPTO = Category(id="c-crypto", name="Crypto", color="#F7931A", is_default=True)


def _h(hid, ticker, quantity, avg_cost, currency="USD", category=STOCK, portfolio="p1"):
    return Holding(
        id=hid,
        portfolio_id=portfolio,
        ticker=ticker,
        quantity=quantity,
        avg_cost=avg_cost,
        currency=currency,
        category_id=category.id if isinstance(category, Category) else category,
        created_at=T0,
        updated_at=T0,
    )


@pytest.fixture
def mixed():
    """One AAPL position in USD and one BTC position priced in USD."""
    return [
        _h("h1", "AAPL", 10, 150.0),
        _h("h2", "BTC", 1, 50000.0, category=CRYPTO),
    ]


class TestConvert:
    """Tests for currency conversion."""

    def test_same_currency_is_identity(self):
        assert convert(123.45, "AUD", "AUD", {}) == 123.45

    def test_foreign_to_base(self):
        assert convert(155.0, "AUD", "USD", RATES) == pytest.approx(100.0)

    def test_base_to_foreign(self):
        assert convert(100.0, "USD", "AUD", RATES) == pytest.approx(155.0)

    def test_cross_rate_pivots_through_base(self):
        assert convert(155.0, "AUD", "BTC", RATES) == pytest.approx(100.0 * 0.000024)

    @pytest.mark.parametrize("amount", [0.01, 1.0, 155.0, 1_234_567.89])
    def test_round_trip(self, amount):
        back = convert(convert(amount, "AUD", "BTC", RATES), "BTC", "AUD", RATES)
        assert back == pytest.approx(amount, rel=1e-9)

    def test_base_rate_not_needed(self):
        assert convert(100.0, "USD", "AUD", {"AUD": 2.0}) == 200.0

    def test_missing_rate_raises(self):
        with pytest.raises(MissingRateError) as excinfo:
            convert(1.0, "AUD", "USD", {"USD": 1.0})
        assert excinfo.value.currency == "AUD"
        assert "AUD" in str(excinfo.value)

    def test_non_positive_rate_raises(self):
        with pytest.raises(ValueError, match="must be > 0"):
            convert(1.0, "AUD", "USD", {"AUD": 0})


class TestTotals:
    """Tests for cost basis and total value."""

    def test_total_cost(self):
        assert total_cost(_h("h", "AAPL", 10, 150.0)) == 1500.0

    def test_total_value(self, mixed):
        assert total_value(mixed, "USD", RATES) == pytest.approx(51500.0)

    def test_two_usd_holdings(self):
        holdings = [_h("a", "X", 10, 100.0), _h("b", "BTC", 1, 50000.0)]
        assert total_value(holdings, "USD", {"USD": 1.0, "AUD": 1.55}) == pytest.approx(51000.0)

    def test_total_value_in_display_currency(self, mixed):
        assert total_value(mixed, "AUD", RATES) == pytest.approx(51500.0 * 1.55)

    def test_empty_set_is_zero(self):
        assert total_value([], "USD", RATES) == 0.0

    def test_holding_value_converts(self):
        assert holding_value(_h("h", "CBA", 1, 155.0, "AUD"), "USD", RATES) == pytest.approx(100.0)

    def test_missing_rate_propagates(self):
        with pytest.raises(MissingRateError):
            total_value([_h("h", "CBA", 1, 155.0, "AUD")], "USD", {})


class TestPercentages:
    """Tests for weights."""

    def test_percentage_of_zero_total(self):
        assert percentage_of(10.0, 0.0) == 0.0

    def test_percentage_of(self):
        assert percentage_of(25.0, 200.0) == 12.5

    def test_holding_percentages_sum_to_100(self, mixed):
        weights = holding_percentages(mixed, "USD", RATES)
        assert weights["h1"] == pytest.approx(1500.0 / 51500.0 * 100)
        assert sum(weights.values()) == pytest.approx(100.0, abs=1e-9)

    def test_all_zero_cost_gives_zero_weights(self):
        weights = holding_percentages([_h("h", "FREE", 5, 0.0)], "USD", RATES)
        assert weights == {"h": 0.0}


class TestGroupByCategory:
    """Tests for category grouping."""

    def test_groups_and_weights(self, mixed):
        groups = group_by_category(mixed, [STOCK, CRYPTO], "USD", RATES)

        assert list(groups) == [STOCK.id, CRYPTO.id]
        assert groups[CRYPTO.id].total == pytest.approx(50000.0)
        assert groups[CRYPTO.id].category == CRYPTO
        assert groups[STOCK.id].percentage == pytest.approx(1500.0 / 51500.0 * 100)

    def test_percentages_close_to_100(self):
        holdings = [
            _h("a", "A", 3, 33.33),
            _h("b", "B", 7, 14.29, "AUD", CRYPTO),
            _h("c", "C", 0.5, 0.1, "BTC", "stale"),
        ]
        groups = group_by_category(holdings, [STOCK, CRYPTO], "AUD", RATES)
        assert sum(g.percentage for g in groups.values()) == pytest.approx(100.0, abs=1e-9)

    def test_stale_category_kept_as_own_group(self):
        holdings = [_h("a", "A", 1, 10.0, category="deleted")]
        groups = group_by_category(holdings, [STOCK], "USD", RATES)
        assert groups["deleted"].category is None
        assert groups["deleted"].percentage == pytest.approx(100.0)

    def test_members_partition_input(self, mixed):
        groups = group_by_category(mixed, [STOCK, CRYPTO], "USD", RATES)
        members = [h for g in groups.values() for h in g.holdings]
        assert sorted(h.id for h in members) == ["h1", "h2"]


class TestGroupByCurrency:
    """Tests for currency grouping."""

    def test_groups(self):
        holdings = [
            _h("a", "A", 1, 155.0, "AUD"),
            _h("b", "B", 1, 100.0, "USD"),
            _h("c", "C", 1, 155.0, "AUD"),
        ]
        groups = group_by_currency(holdings, "USD", RATES)

        assert list(groups) == ["AUD", "USD"]
        assert groups["AUD"].total == pytest.approx(200.0)
        assert groups["AUD"].percentage == pytest.approx(200.0 / 300.0 * 100)
        assert [h.id for h in groups["AUD"].holdings] == ["a", "c"]


class TestGroupByAsset:
    """Tests for ticker grouping."""

    def test_sums_quantity_across_portfolios(self):
        holdings = [
            _h("a", "AAPL", 10, 150.0, portfolio="p1"),
            _h("b", "AAPL", 5, 160.0, portfolio="p2"),
            _h("c", "MSFT", 2, 300.0, portfolio="p1"),
        ]
        groups = group_by_asset(holdings, "USD", RATES)

        assert groups["AAPL"].total_quantity == 15.0
        assert groups["AAPL"].total == pytest.approx(2300.0)
        assert groups["MSFT"].total_quantity == 2.0
        assert sum(g.percentage for g in groups.values()) == pytest.approx(100.0)


class TestEnrichment:
    """Tests for enriched holdings and portfolio summaries."""

    def test_enrich(self, mixed):
        enriched = enrich_holdings(mixed, [STOCK, CRYPTO], "USD", RATES)

        assert enriched[0].holding is mixed[0]
        assert enriched[0].total_cost == 1500.0
        assert enriched[1].total_value == pytest.approx(50000.0)
        assert enriched[1].category == CRYPTO
        assert enriched[0].percentage_of_portfolio == pytest.approx(1500.0 / 51500.0 * 100)

    def test_enrich_stale_category(self):
        (enriched,) = enrich_holdings([_h("a", "A", 1, 1.0, category="gone")], [], "USD", RATES)
        assert enriched.category is None

    def test_summaries_weight_within_portfolio(self):
        p1 = Portfolio(id="p1", name="One", created_at=T0, updated_at=T0)
        p2 = Portfolio(id="p2", name="Two", created_at=T0, updated_at=T0)
        empty = Portfolio(id="p3", name="Empty", created_at=T0, updated_at=T0)
        holdings = [
            _h("a", "AAPL", 10, 150.0, portfolio="p1"),
            _h("b", "MSFT", 10, 150.0, portfolio="p1"),
            _h("c", "VTI", 1, 200.0, portfolio="p2"),
        ]

        summaries = create_portfolio_summaries([p1, p2, empty], holdings, [STOCK], "USD", RATES)

        assert [s.holdings_count for s in summaries] == [2, 1, 0]
        assert summaries[0].total_value == pytest.approx(3000.0)
        assert [e.percentage_of_portfolio for e in summaries[0].holdings] == pytest.approx([50.0, 50.0])
        assert summaries[1].holdings[0].percentage_of_portfolio == pytest.approx(100.0)
        assert summaries[2].total_value == 0.0
