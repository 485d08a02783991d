"""First-run seeding of settings and default categories."""

from __future__ import annotations

import logging
import uuid

from portfoliotracker.db.record_store import RecordStore
from portfoliotracker.models import (
    CATEGORIES,
    DEFAULT_CATEGORIES,
    SETTINGS,
    Category,
    default_settings,
)

logger = logging.getLogger(__name__)


def generate_id() -> str:
    """Return a fresh opaque record identifier."""
    return str(uuid.uuid4())


def initialize_database(store: RecordStore) -> bool:
    """Seed the settings record and default categories on first run.

    First run is detected by an empty settings collection. Default
    categories are only added when none exist yet, so repeated calls
    (or a store whose settings were lost) never duplicate them.

    Args:
        store: Record store to seed.

    Returns:
        True if anything was written, False if the call was a no-op.

    """
    with store.transaction():
        if store.count(SETTINGS) > 0:
            return False

        store.put(SETTINGS, default_settings())
        if store.count(CATEGORIES, is_default=True) == 0:
            for name, color in DEFAULT_CATEGORIES:
                store.put(
                    CATEGORIES,
                    Category(id=generate_id(), name=name, color=color, is_default=True),
                )

    logger.info(
        "Seeded settings and %d default categories", len(DEFAULT_CATEGORIES)
    )
    return True
