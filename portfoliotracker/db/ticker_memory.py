"""Ticker-to-category memory used to pre-fill new holdings.

Entries are advisory: a missing or stale entry never blocks creating or
editing a holding. There is at most one entry per normalized ticker and
the latest assignment always wins.
"""

from __future__ import annotations

from portfoliotracker.db.record_store import RecordStore
from portfoliotracker.models import TICKER_MEMORY, TickerMemory, normalize_ticker


def suggest_category(store: RecordStore, ticker: str) -> str | None:
    """Return the category last assigned to ``ticker``, if any.

    The lookup is trimmed and case-insensitive.
    """
    normalized = normalize_ticker(ticker)
    if not normalized:
        return None
    memory = store.get(TICKER_MEMORY, normalized)
    return memory.category_id if memory else None


def remember_category(store: RecordStore, ticker: str, category_id: str) -> TickerMemory:
    """Record ``category_id`` as the suggestion for ``ticker``, overwriting any prior entry."""
    normalized = normalize_ticker(ticker)
    if not normalized:
        msg = "ticker must be a non-empty string"
        raise ValueError(msg)
    return store.put(TICKER_MEMORY, TickerMemory(ticker=normalized, category_id=category_id))


def forget_ticker(store: RecordStore, ticker: str) -> bool:
    """Remove the entry for ``ticker``. Returns False if there was none."""
    normalized = normalize_ticker(ticker)
    return store.delete_where(TICKER_MEMORY, ticker=normalized) > 0


def clear_ticker_memory(store: RecordStore) -> int:
    """Remove every entry. Returns the number removed."""
    return store.clear(TICKER_MEMORY)


def ticker_memory_map(store: RecordStore) -> dict[str, str]:
    """Return all entries as ``{ticker: category_id}``."""
    return {m.ticker: m.category_id for m in store.all(TICKER_MEMORY)}
