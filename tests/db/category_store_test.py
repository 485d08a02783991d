"""Tests for the category data store."""

from __future__ import annotations

import pytest
from portfoliotracker.db.category_store import (
    category_map,
    create_category,
    custom_categories,
    default_categories,
    delete_category,
    fallback_category,
    get_category,
    get_category_by_name,
    list_categories,
    update_category,
)
from portfoliotracker.db.portfolio_store import create_holding, get_holding, get_holdings
from portfoliotracker.db.ticker_memory import suggest_category
from portfoliotracker.errors import (
    InvariantViolationError,
    NotFoundError,
    ProtectedEntityError,
)
from portfoliotracker.models import CATEGORIES, HOLDINGS, TICKER_MEMORY, Category


class TestCreateCategory:
    """Tests for custom category creation."""

    def test_create(self, store):
        category = create_category(store, " Art ", "#A1b2C3")
        assert category.name == "Art"
        assert category.is_default is False
        assert get_category(store, category.id) == category

    def test_blank_name_raises(self, store):
        with pytest.raises(ValueError, match="non-empty"):
            create_category(store, "", "#000000")

    @pytest.mark.parametrize("color", ["red", "#FFF", "#GGGGGG", "4CAF50", "#4CAF500"])
    def test_bad_colour_raises(self, store, color):
        with pytest.raises(ValueError, match="hex RGB"):
            create_category(store, "Art", color)


class TestUpdateCategory:
    """Tests for renaming and recolouring."""

    def test_rename_keeps_colour(self, store):
        category = create_category(store, "Art", "#123456")
        updated = update_category(store, category.id, name="Fine Art")
        assert updated.name == "Fine Art"
        assert updated.color == "#123456"

    def test_default_categories_can_be_recoloured(self, store, stock):
        assert update_category(store, stock.id, color="#000000").is_default is True

    def test_missing_raises(self, store):
        with pytest.raises(NotFoundError):
            update_category(store, "ghost", name="x")


class TestFallbackCategory:
    """Tests for the reassignment target."""

    def test_lowest_default_name(self, store):
        assert fallback_category(store).name == "Bond"

    def test_custom_categories_never_chosen(self, store):
        create_category(store, "Aardvark", "#000000")
        assert fallback_category(store).name == "Bond"

    def test_no_defaults_raises(self, empty_store):
        with pytest.raises(InvariantViolationError):
            fallback_category(empty_store)


class TestDeleteCategory:
    """Tests for deletion with holding reassignment."""

    def test_default_category_is_protected(self, store, stock):
        with pytest.raises(ProtectedEntityError):
            delete_category(store, stock.id)
        assert get_category(store, stock.id) is not None

    def test_missing_raises(self, store):
        with pytest.raises(NotFoundError):
            delete_category(store, "ghost")

    def test_holdings_move_to_fallback(self, store, portfolio, stock):
        art = create_category(store, "Art", "#123456")
        moved = create_holding(store, portfolio.id, "MONA", 1, 100.0, "USD", art.id)
        untouched = create_holding(store, portfolio.id, "AAPL", 1, 100.0, "USD", stock.id)
        before = store.count(HOLDINGS)

        target = delete_category(store, art.id)

        assert target.name == "Bond"
        assert get_category(store, art.id) is None
        assert get_holding(store, moved.id).category_id == target.id
        assert get_holding(store, untouched.id).category_id == stock.id
        assert store.count(HOLDINGS) == before

    def test_no_holding_left_orphaned(self, store, portfolio):
        art = create_category(store, "Art", "#123456")
        for ticker in ("A", "B", "C"):
            create_holding(store, portfolio.id, ticker, 1, 1.0, "USD", art.id)

        delete_category(store, art.id)

        ids = set(category_map(store))
        assert all(h.category_id in ids for h in get_holdings(store))

    def test_ticker_memory_repointed(self, store, portfolio):
        art = create_category(store, "Art", "#123456")
        create_holding(store, portfolio.id, "MONA", 1, 1.0, "USD", art.id)

        target = delete_category(store, art.id)

        assert suggest_category(store, "MONA") == target.id

    def test_single_commit_notification(self, store, portfolio):
        art = create_category(store, "Art", "#123456")
        create_holding(store, portfolio.id, "MONA", 1, 1.0, "USD", art.id)
        seen = []
        store.add_commit_listener(seen.append)

        delete_category(store, art.id)

        assert seen == [frozenset({HOLDINGS, TICKER_MEMORY, CATEGORIES})]

    def test_without_defaults_nothing_changes(self, empty_store):
        empty_store.put(CATEGORIES, Category(id="c1", name="Art", color="#123456"))
        with pytest.raises(InvariantViolationError):
            delete_category(empty_store, "c1")
        assert get_category(empty_store, "c1") is not None


class TestCategoryQueries:
    """Tests for category lookups."""

    def test_by_name_ignores_case(self, store, stock):
        assert get_category_by_name(store, "  sToCk ") == stock
        assert get_category_by_name(store, "nothing") is None

    def test_list_sorted_by_name(self, store):
        names = [c.name for c in list_categories(store)]
        assert names == sorted(names)
        assert len(names) == 8

    def test_default_and_custom_split(self, store):
        create_category(store, "Art", "#123456")
        assert len(default_categories(store)) == 8
        assert [c.name for c in custom_categories(store)] == ["Art"]
