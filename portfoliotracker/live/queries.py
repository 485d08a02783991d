"""Live queries: query results kept current as the store changes.

A live query is a function of the store. ``LiveQueries.subscribe``
evaluates it once, delivers the result, and then re-evaluates it after
every commit that touched a collection the previous evaluation read.
The new result is delivered only if it differs from the last one, so a
write to an unrelated portfolio does not notify a subscriber watching a
different one.

Dependencies are recorded automatically by the store while the query
runs, so a query that starts reading another collection (say, after a
branch) is tracked from that evaluation on.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable
from typing import Any

from portfoliotracker.db.record_store import RecordStore

logger = logging.getLogger(__name__)

QueryFn = Callable[[RecordStore], Any]
ResultCallback = Callable[[Any], None]
ErrorCallback = Callable[[Exception], None]


class Subscription:
    """Handle for one live query.

    Attributes:
        value: The most recently delivered result.
        dependencies: Collections the last evaluation read.
        active: False once unsubscribed.

    """

    def __init__(
        self,
        registry: LiveQueries,
        sub_id: int,
        query_fn: QueryFn,
        on_result: ResultCallback | None,
        on_error: ErrorCallback | None,
    ) -> None:
        self.id = sub_id
        self.query_fn = query_fn
        self.on_result = on_result
        self.on_error = on_error
        self.value: Any = None
        self.dependencies: frozenset[str] = frozenset()
        self.active = True
        self._registry = registry

    def unsubscribe(self) -> None:
        """Stop delivery immediately. Safe to call more than once."""
        self._registry.remove(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        name = getattr(self.query_fn, "__name__", "query")
        return f"Subscription(id={self.id}, query={name}, deps={sorted(self.dependencies)})"


class LiveQueries:
    """Observer registry keyed by the collections each query depends on."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._subscriptions: dict[int, Subscription] = {}
        self._by_collection: dict[str, set[int]] = {}
        self._dispose = store.add_commit_listener(self._on_commit)

    def subscribe(
        self,
        query_fn: QueryFn,
        on_result: ResultCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Start a live query.

        The query is evaluated immediately and its result is both stored
        on the returned subscription and passed to ``on_result``.

        Args:
            query_fn: Function of the store producing the result. It must
                only read through the store and the result must support
                ``==``.
            on_result: Called with each new result.
            on_error: Called with exceptions raised by re-evaluations
                or by ``on_result`` for them. Without it those exceptions
                are logged. Either way other subscribers and the writer
                are unaffected.

        Returns:
            The subscription handle.

        Raises:
            Exception: Whatever the first evaluation raises; nothing is
                registered in that case.

        """
        sub = Subscription(self, next(self._ids), query_fn, on_result, on_error)
        with self._store.snapshot():
            with self._store.track_reads() as reads:
                sub.value = query_fn(self._store)
            self._index(sub, frozenset(reads))
            logger.debug("Subscribed %r", sub)
            if on_result is not None:
                on_result(sub.value)
        return sub

    def remove(self, sub: Subscription) -> None:
        with self._lock:
            sub.active = False
            if self._subscriptions.pop(sub.id, None) is None:
                return
            for collection in sub.dependencies:
                ids = self._by_collection.get(collection)
                if ids is not None:
                    ids.discard(sub.id)
                    if not ids:
                        del self._by_collection[collection]
        logger.debug("Unsubscribed %r", sub)

    def close(self) -> None:
        """Unsubscribe everything and detach from the store."""
        with self._lock:
            subs = list(self._subscriptions.values())
        for sub in subs:
            sub.unsubscribe()
        self._dispose()

    def __len__(self) -> int:
        return len(self._subscriptions)

    def _index(self, sub: Subscription, dependencies: frozenset[str]) -> None:
        with self._lock:
            if not sub.active:
                return
            for collection in sub.dependencies - dependencies:
                ids = self._by_collection.get(collection)
                if ids is not None:
                    ids.discard(sub.id)
            for collection in dependencies:
                self._by_collection.setdefault(collection, set()).add(sub.id)
            sub.dependencies = dependencies
            self._subscriptions[sub.id] = sub

    def _on_commit(self, touched: frozenset[str]) -> None:
        with self._lock:
            affected_ids: set[int] = set()
            for collection in touched:
                affected_ids |= self._by_collection.get(collection, set())
            affected = [
                self._subscriptions[i]
                for i in sorted(affected_ids)
                if i in self._subscriptions
            ]

        for sub in affected:
            if not sub.active:
                continue
            try:
                self._refresh(sub)
            except Exception:
                logger.exception("Live query %r callback failed", sub)

    def _refresh(self, sub: Subscription) -> None:
        with self._store.track_reads() as reads:
            try:
                value = sub.query_fn(self._store)
            except Exception as exc:
                # Keep the old dependencies too so a recovery is noticed
                self._index(sub, sub.dependencies | frozenset(reads))
                if not sub.active:
                    return
                if sub.on_error is not None:
                    sub.on_error(exc)
                else:
                    logger.exception("Live query %r failed", sub)
                return
        self._index(sub, frozenset(reads))

        if value == sub.value:
            return
        sub.value = value
        if not sub.active or sub.on_result is None:
            return
        try:
            sub.on_result(value)
        except Exception as exc:
            if sub.on_error is None:
                raise
            sub.on_error(exc)
