"""Category data store: default and custom holding categories.

Default categories are seeded once and can never be deleted. Deleting a
custom category moves its holdings (and ticker memory entries) to the
fallback default category inside the same transaction, so no holding is
ever left pointing at a missing category.
"""

from __future__ import annotations

import logging
import re

from portfoliotracker.db.record_store import RecordStore
from portfoliotracker.db.seed import generate_id
from portfoliotracker.errors import (
    InvariantViolationError,
    NotFoundError,
    ProtectedEntityError,
)
from portfoliotracker.models import CATEGORIES, HOLDINGS, TICKER_MEMORY, Category

logger = logging.getLogger(__name__)

_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _clean_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        msg = "Category name must be a non-empty string"
        raise ValueError(msg)
    return cleaned


def _check_color(color: str) -> str:
    if not _HEX_COLOR.match(color):
        msg = f"color must be a hex RGB string like '#4CAF50', got '{color}'"
        raise ValueError(msg)
    return color


def create_category(store: RecordStore, name: str, color: str) -> Category:
    """Create a custom (deletable) category.

    Args:
        store: Record store.
        name: Display name, trimmed.
        color: Hex RGB colour (``#RRGGBB``).

    Returns:
        The new category.

    Raises:
        ValueError: If the name is blank or the colour is malformed.

    """
    category = Category(
        id=generate_id(),
        name=_clean_name(name),
        color=_check_color(color),
        is_default=False,
    )
    store.put(CATEGORIES, category)
    logger.info("Created category %s (%s)", category.name, category.id)
    return category


def update_category(
    store: RecordStore,
    category_id: str,
    name: str | None = None,
    color: str | None = None,
) -> Category:
    """Rename and/or recolour a category.

    Raises:
        NotFoundError: If the category does not exist.

    """
    with store.transaction():
        category = store.get(CATEGORIES, category_id)
        if category is None:
            raise NotFoundError(CATEGORIES, category_id)
        if name is not None:
            category.name = _clean_name(name)
        if color is not None:
            category.color = _check_color(color)
        store.put(CATEGORIES, category)
    return category


def fallback_category(store: RecordStore) -> Category:
    """Pick the default category that orphaned holdings are moved to.

    The choice is the default category with the lowest case-insensitive
    name; insertion order breaks ties.

    Raises:
        InvariantViolationError: If no default category exists.

    """
    defaults = store.query(CATEGORIES, is_default=True)
    if not defaults:
        msg = "No default category exists to receive reassigned holdings"
        raise InvariantViolationError(msg)
    return min(defaults, key=lambda c: c.name.casefold())


def delete_category(store: RecordStore, category_id: str) -> Category:
    """Delete a custom category, reassigning its holdings first.

    Args:
        store: Record store.
        category_id: Category to delete.

    Returns:
        The fallback category that received the reassigned holdings.

    Raises:
        NotFoundError: If the category does not exist.
        ProtectedEntityError: If the category is a default category.

    """
    with store.transaction():
        category = store.get(CATEGORIES, category_id)
        if category is None:
            raise NotFoundError(CATEGORIES, category_id)
        if category.is_default:
            raise ProtectedEntityError(CATEGORIES, category_id)

        target = fallback_category(store)
        moved = store.update_where(
            HOLDINGS, {"category_id": target.id}, category_id=category_id
        )
        store.update_where(
            TICKER_MEMORY, {"category_id": target.id}, category_id=category_id
        )
        store.delete(CATEGORIES, category_id)

    logger.info(
        "Deleted category %s; moved %d holdings to %s",
        category.name,
        moved,
        target.name,
    )
    return target


def get_category(store: RecordStore, category_id: str) -> Category | None:
    return store.get(CATEGORIES, category_id)


def get_category_by_name(store: RecordStore, name: str) -> Category | None:
    """Find a category by name, ignoring case and surrounding whitespace."""
    wanted = name.strip().casefold()
    for category in store.all(CATEGORIES):
        if category.name.casefold() == wanted:
            return category
    return None


def list_categories(store: RecordStore) -> list[Category]:
    """All categories sorted by name."""
    return store.all(CATEGORIES, order_by="name")


def default_categories(store: RecordStore) -> list[Category]:
    return store.query(CATEGORIES, order_by="name", is_default=True)


def custom_categories(store: RecordStore) -> list[Category]:
    return store.query(CATEGORIES, order_by="name", is_default=False)


def category_map(store: RecordStore) -> dict[str, Category]:
    """Lookup table ``{id: category}``."""
    return {c.id: c for c in store.all(CATEGORIES)}
