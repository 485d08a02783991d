"""Tests for display formatting helpers."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from portfoliotracker.portfolio.formatting import (
    currency_symbol,
    format_compact_number,
    format_currency,
    format_date,
    format_number,
    format_percentage,
    format_quantity,
    format_relative_time,
    parse_currency_string,
    truncate,
)


class TestNumbers:
    """Tests for number and currency formatting."""

    def test_format_number(self):
        assert format_number(1234.5) == "1,234.50"
        assert format_number(0.123456, 4) == "0.1235"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (999.0, "999.00"),
            (1500.0, "1.50K"),
            (2_500_000.0, "2.50M"),
            (-3_000_000_000.0, "-3.00B"),
        ],
    )
    def test_compact(self, value, expected):
        assert format_compact_number(value) == expected

    def test_currency_symbols(self):
        assert currency_symbol("USD") == "$"
        assert currency_symbol("AUD") == "A$"
        assert currency_symbol("BTC") == "₿"

    def test_format_currency(self):
        assert format_currency(1234.567, "USD") == "$1,234.57"
        assert format_currency(0.001, "BTC") == "₿0.00100000"
        assert format_currency(1500, "AUD", compact=True) == "A$1.50K"
        assert format_currency(12.5, "USD", show_symbol=False) == "12.50"
        assert format_currency(12.5, "USD", decimals=0) == "$12"

    def test_percentage(self):
        assert format_percentage(12.345) == "12.35%"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (0.0005, "0.00050000"),
            (0.5, "0.500000"),
            (12.5, "12.5000"),
            (1234.0, "1,234.00"),
        ],
    )
    def test_quantity(self, value, expected):
        assert format_quantity(value) == expected


class TestDates:
    """Tests for date formatting."""

    def test_format_date(self):
        assert format_date(datetime(2024, 1, 5, 13, 0)) == "Jan 5, 2024"
        assert format_date("2024-12-25T08:00:00") == "Dec 25, 2024"
        assert format_date(None) == "-"

    @pytest.mark.parametrize(
        ("delta", "expected"),
        [
            (timedelta(seconds=30), "Just now"),
            (timedelta(minutes=5), "5m ago"),
            (timedelta(hours=3), "3h ago"),
            (timedelta(days=2), "2d ago"),
        ],
    )
    def test_relative_time(self, delta, expected):
        now = datetime(2024, 6, 15, 12, 0)
        assert format_relative_time(now - delta, now=now) == expected

    def test_relative_time_falls_back_to_date(self):
        now = datetime(2024, 6, 15, 12, 0)
        assert format_relative_time(datetime(2024, 6, 1), now=now) == "Jun 1, 2024"

    def test_relative_time_missing(self):
        assert format_relative_time(None) == "-"


class TestParsing:
    """Tests for parsing and truncation."""

    def test_parse_currency_string(self):
        assert parse_currency_string("A$1,234.50") == 1234.5
        assert parse_currency_string("-$10") == -10.0
        assert parse_currency_string("n/a") == 0.0

    def test_truncate(self):
        assert truncate("short", 10) == "short"
        assert truncate("a long portfolio name", 10) == "a long ..."
