"""Tests for ticker-to-category memory."""

from __future__ import annotations

import pytest
from portfoliotracker.db.ticker_memory import (
    clear_ticker_memory,
    forget_ticker,
    remember_category,
    suggest_category,
    ticker_memory_map,
)
from portfoliotracker.models import TICKER_MEMORY


class TestSuggest:
    """Tests for suggestion lookups."""

    def test_unknown_ticker(self, store):
        assert suggest_category(store, "AAPL") is None

    def test_lookup_is_trimmed_and_case_insensitive(self, store, stock):
        remember_category(store, "AAPL", stock.id)
        assert suggest_category(store, "  aapl ") == stock.id

    def test_blank_ticker_suggests_nothing(self, store):
        assert suggest_category(store, "   ") is None


class TestRemember:
    """Tests for recording suggestions."""

    def test_latest_assignment_wins(self, store, stock, crypto):
        remember_category(store, "coin", stock.id)
        remember_category(store, "COIN", crypto.id)
        assert suggest_category(store, "coin") == crypto.id
        assert store.count(TICKER_MEMORY) == 1

    def test_blank_ticker_rejected(self, store, stock):
        with pytest.raises(ValueError, match="non-empty"):
            remember_category(store, "", stock.id)

    def test_stale_category_is_allowed(self, store):
        remember_category(store, "OLD", "deleted-category")
        assert suggest_category(store, "OLD") == "deleted-category"


class TestForget:
    """Tests for removing entries."""

    def test_forget(self, store, stock):
        remember_category(store, "AAPL", stock.id)
        assert forget_ticker(store, "aapl") is True
        assert forget_ticker(store, "aapl") is False
        assert suggest_category(store, "AAPL") is None

    def test_clear_and_map(self, store, stock, crypto):
        remember_category(store, "AAPL", stock.id)
        remember_category(store, "BTC", crypto.id)
        assert ticker_memory_map(store) == {"AAPL": stock.id, "BTC": crypto.id}
        assert clear_ticker_memory(store) == 2
        assert ticker_memory_map(store) == {}
