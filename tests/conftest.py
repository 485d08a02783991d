"""Shared pytest fixtures for the portfolio tracker tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from portfoliotracker.db.category_store import get_category_by_name
from portfoliotracker.db.portfolio_store import create_portfolio
from portfoliotracker.db.record_store import RecordStore
from portfoliotracker.db.seed import initialize_database
from portfoliotracker.models import Category, Portfolio


@pytest.fixture
def store() -> Iterator[RecordStore]:
    """Fresh in-memory store with settings and default categories seeded."""
    s = RecordStore.in_memory()
    initialize_database(s)
    yield s
    s.close()


@pytest.fixture
def empty_store() -> Iterator[RecordStore]:
    """Fresh in-memory store with nothing seeded."""
    s = RecordStore.in_memory()
    yield s
    s.close()


@pytest.fixture
def portfolio(store: RecordStore) -> Portfolio:
    return create_portfolio(store, "Main")


@pytest.fixture
def stock(store: RecordStore) -> Category:
    category = get_category_by_name(store, "Stock")
    assert category is not None
    return category


@pytest.fixture
def crypto(store: RecordStore) -> Category:
    category = get_category_by_name(store, "Crypto")
    assert category is not None
    return category
