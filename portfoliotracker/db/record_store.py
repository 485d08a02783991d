"""Record store: DuckDB-backed collections for the five entity kinds.

One ``RecordStore`` owns one DuckDB connection. Every read and write
goes through a re-entrant lock, so calls issued from several threads are
serialized and a transaction is indivisible to every other caller.

Writes are grouped with ``transaction()``; nested transactions join the
outermost one. When the outermost transaction commits, the set of
collections it touched is published to commit listeners (the live query
layer) in commit order.

"""

from __future__ import annotations

import json
import logging
import threading
from collections import deque
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from portfoliotracker.db.connection import init_memory_db, init_portfolio_db
from portfoliotracker.db.schema import COLLECTIONS, CollectionSchema
from portfoliotracker.errors import DanglingReferenceError, NotFoundError
from portfoliotracker.models import MODELS

if TYPE_CHECKING:
    import duckdb

logger = logging.getLogger(__name__)

CommitListener = Callable[[frozenset[str]], None]

_MULTI_VALUE_TYPES = (list, tuple, set, frozenset)


class RecordStore:
    """Transactional record store over a DuckDB connection."""

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn
        self._lock = threading.RLock()
        self._depth = 0
        self._touched: set[str] = set()
        self._listeners: list[CommitListener] = []
        self._read_trackers: list[set[str]] = []
        self._pending: deque[frozenset[str]] = deque()
        self._dispatching = False

    @classmethod
    def open(cls, db_path: str | Path | None = None) -> RecordStore:
        """Open (and create if needed) the on-disk store."""
        return cls(init_portfolio_db(db_path))

    @classmethod
    def in_memory(cls) -> RecordStore:
        """Create an ephemeral store, mainly for tests."""
        return cls(init_memory_db())

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> RecordStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ── transactions ──────────────────────────────────────────────

    @contextmanager
    def transaction(self) -> Iterator[RecordStore]:
        """Run a block of reads and writes as one atomic unit.

        Either every write inside the block is committed or none is.
        An exception escaping the outermost block rolls back and is
        re-raised unchanged.

        Yields:
            This store.

        """
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self._conn.begin()
                self._touched = set()
            self._depth += 1
            try:
                yield self
            except BaseException:
                if outermost:
                    self._rollback()
                raise
            finally:
                self._depth -= 1
            if outermost:
                self._commit()

    def _commit(self) -> None:
        try:
            self._conn.commit()
        except Exception:
            # DuckDB has already discarded the failed transaction
            self._touched = set()
            raise
        touched = frozenset(self._touched)
        self._touched = set()
        if touched:
            logger.debug("Committed transaction touching %s", sorted(touched))
            self._publish(touched)

    def _rollback(self) -> None:
        self._touched = set()
        self._conn.rollback()
        logger.debug("Rolled back transaction")

    # ── commit listeners ──────────────────────────────────────────

    def add_commit_listener(self, listener: CommitListener) -> Callable[[], None]:
        """Register ``listener`` to receive the collections each commit touched.

        Returns:
            A disposer that unregisters the listener.

        """
        with self._lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    def _publish(self, touched: frozenset[str]) -> None:
        # Commits made by listeners are queued behind the current batch
        self._pending.append(touched)
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._pending:
                batch = self._pending.popleft()
                for listener in list(self._listeners):
                    # The commit has already happened; failures stop here
                    try:
                        listener(batch)
                    except Exception:
                        logger.exception("Commit listener %r failed", listener)
        finally:
            self._dispatching = False

    # ── read tracking ─────────────────────────────────────────────

    @contextmanager
    def snapshot(self) -> Iterator[RecordStore]:
        """Hold the store still: no other thread reads or writes inside the block."""
        with self._lock:
            yield self

    @contextmanager
    def track_reads(self) -> Iterator[set[str]]:
        """Collect the names of collections read inside the block.

        The store lock is held for the whole block, so the reads see
        one consistent state.
        """
        with self._lock:
            tracked: set[str] = set()
            self._read_trackers.append(tracked)
            try:
                yield tracked
            finally:
                self._read_trackers.pop()

    def _note_read(self, collection: str) -> None:
        for tracked in self._read_trackers:
            tracked.add(collection)

    # ── reads ─────────────────────────────────────────────────────

    def get(self, collection: str, key: str) -> Any | None:
        """Fetch one record by primary key, or None if it does not exist."""
        schema = _schema(collection)
        rows = self._select(schema, f"{schema.key} = ?", [key], limit=1)
        return rows[0] if rows else None

    def exists(self, collection: str, key: str) -> bool:
        return self.get(collection, key) is not None

    def query(
        self,
        collection: str,
        order_by: str | Sequence[str] | None = None,
        **criteria: Any,
    ) -> list[Any]:
        """Look up records by indexed fields.

        A scalar criterion is an equality match; a list, tuple or set is
        an "any of" match. Criteria are ANDed.

        Args:
            collection: Collection name.
            order_by: Field name, ``"-field"`` for descending, or a
                sequence of those. Defaults to insertion order.
            **criteria: Indexed field filters.

        Returns:
            List of records (a snapshot).

        Raises:
            ValueError: If a criterion or sort field is not allowed.

        """
        schema = _schema(collection)
        where, params = _where_clause(schema, criteria)
        if where is None:
            self._note_read(schema.name)
            return []
        return self._select(schema, where, params, order_by=order_by)

    def all(self, collection: str, order_by: str | Sequence[str] | None = None) -> list[Any]:
        return self.query(collection, order_by=order_by)

    def first(
        self,
        collection: str,
        order_by: str | Sequence[str] | None = None,
        **criteria: Any,
    ) -> Any | None:
        """Return the first matching record, or None."""
        schema = _schema(collection)
        where, params = _where_clause(schema, criteria)
        if where is None:
            self._note_read(schema.name)
            return None
        rows = self._select(schema, where, params, order_by=order_by, limit=1)
        return rows[0] if rows else None

    def count(self, collection: str, **criteria: Any) -> int:
        schema = _schema(collection)
        where, params = _where_clause(schema, criteria)
        with self._lock:
            self._note_read(schema.name)
            if where is None:
                return 0
            sql = f"SELECT COUNT(*) FROM {schema.name}"  # noqa: S608
            if where:
                sql += f" WHERE {where}"
            row = self._conn.execute(sql, params).fetchone()
        return int(row[0]) if row else 0

    def _select(
        self,
        schema: CollectionSchema,
        where: str,
        params: list[Any],
        order_by: str | Sequence[str] | None = None,
        limit: int | None = None,
    ) -> list[Any]:
        sql = f"SELECT {', '.join(schema.columns)} FROM {schema.name}"  # noqa: S608
        if where:
            sql += f" WHERE {where}"
        sql += f" ORDER BY {_order_clause(schema, order_by)}"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"

        with self._lock:
            self._note_read(schema.name)
            result = self._conn.execute(sql, params).fetchall()
        return [_decode(schema, row) for row in result]

    # ── writes ────────────────────────────────────────────────────

    def put(self, collection: str, record: Any) -> Any:
        """Insert or replace a record, keyed by its primary key.

        Referenced rows (e.g. a holding's portfolio and category) must
        exist; field values are otherwise stored as given.

        Returns:
            The record that was written.

        Raises:
            DanglingReferenceError: If a referenced row is missing.
            TypeError: If ``record`` is not the collection's model type.

        """
        schema = _schema(collection)
        model = MODELS[collection]
        if not isinstance(record, model):
            msg = f"{collection} expects {model.__name__}, got {type(record).__name__}"
            raise TypeError(msg)

        values = _encode(schema, record)
        key = values[schema.key]

        with self.transaction():
            self._check_references(schema, values)
            if self._key_exists(schema, key):
                assignments = ", ".join(
                    f"{col} = ?" for col in schema.columns if col != schema.key
                )
                params = [values[col] for col in schema.columns if col != schema.key]
                self._conn.execute(
                    f"UPDATE {schema.name} SET {assignments} WHERE {schema.key} = ?",  # noqa: S608
                    [*params, key],
                )
            else:
                placeholders = ", ".join("?" for _ in schema.columns)
                self._conn.execute(
                    f"INSERT INTO {schema.name} ({', '.join(schema.columns)}) "  # noqa: S608
                    f"VALUES ({placeholders})",
                    [values[col] for col in schema.columns],
                )
            self._touched.add(schema.name)
        return record

    def delete(self, collection: str, key: str) -> None:
        """Delete one record by primary key.

        Raises:
            NotFoundError: If no record has that key.

        """
        schema = _schema(collection)
        with self.transaction():
            if not self._key_exists(schema, key):
                raise NotFoundError(schema.name, key)
            self._conn.execute(
                f"DELETE FROM {schema.name} WHERE {schema.key} = ?",  # noqa: S608
                [key],
            )
            self._touched.add(schema.name)

    def delete_where(self, collection: str, **criteria: Any) -> int:
        """Delete every record matching the criteria.

        Returns:
            Number of deleted records.

        """
        if not criteria:
            msg = "delete_where requires at least one criterion; use clear()"
            raise ValueError(msg)
        schema = _schema(collection)
        where, params = _where_clause(schema, criteria)
        if where is None:
            return 0
        with self.transaction():
            n = self._count_raw(schema, where, params)
            if n:
                self._conn.execute(
                    f"DELETE FROM {schema.name} WHERE {where}",  # noqa: S608
                    params,
                )
                self._touched.add(schema.name)
        return n

    def update_where(
        self,
        collection: str,
        changes: dict[str, Any],
        **criteria: Any,
    ) -> int:
        """Set ``changes`` on every record matching the criteria.

        Returns:
            Number of updated records.

        Raises:
            ValueError: If a changed field is unknown or is the key.
            DanglingReferenceError: If a changed reference is missing.

        """
        if not changes:
            return 0
        schema = _schema(collection)
        for col in changes:
            if col not in schema.columns or col == schema.key:
                msg = f"Cannot update field '{col}' of {schema.name}"
                raise ValueError(msg)
        where, params = _where_clause(schema, criteria)
        if where is None:
            return 0

        encoded = {
            col: json.dumps(val, sort_keys=True) if col in schema.json_columns else val
            for col, val in changes.items()
        }
        with self.transaction():
            self._check_references(schema, encoded)
            n = self._count_raw(schema, where, params)
            if n:
                assignments = ", ".join(f"{col} = ?" for col in encoded)
                sql = f"UPDATE {schema.name} SET {assignments}"  # noqa: S608
                if where:
                    sql += f" WHERE {where}"
                self._conn.execute(sql, [*encoded.values(), *params])
                self._touched.add(schema.name)
        return n

    def clear(self, collection: str) -> int:
        """Delete every record in a collection."""
        schema = _schema(collection)
        with self.transaction():
            n = self._count_raw(schema, "", [])
            if n:
                self._conn.execute(f"DELETE FROM {schema.name}")  # noqa: S608
                self._touched.add(schema.name)
        return n

    # ── internals ─────────────────────────────────────────────────

    def _key_exists(self, schema: CollectionSchema, key: Any) -> bool:
        row = self._conn.execute(
            f"SELECT 1 FROM {schema.name} WHERE {schema.key} = ? LIMIT 1",  # noqa: S608
            [key],
        ).fetchone()
        return row is not None

    def _count_raw(self, schema: CollectionSchema, where: str, params: list[Any]) -> int:
        sql = f"SELECT COUNT(*) FROM {schema.name}"  # noqa: S608
        if where:
            sql += f" WHERE {where}"
        row = self._conn.execute(sql, params).fetchone()
        return int(row[0]) if row else 0

    def _check_references(self, schema: CollectionSchema, values: dict[str, Any]) -> None:
        for col, target in schema.references.items():
            if col not in values:
                continue
            if not self._key_exists(_schema(target), values[col]):
                raise DanglingReferenceError(col, target, values[col])


def _schema(collection: str) -> CollectionSchema:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        msg = f"Unknown collection '{collection}'"
        raise ValueError(msg) from None


def _where_clause(
    schema: CollectionSchema,
    criteria: dict[str, Any],
) -> tuple[str | None, list[Any]]:
    """Build a WHERE clause from equality / any-of criteria.

    Returns:
        (clause, params). The clause is "" for no criteria, and None when
        an empty any-of set makes the result empty by definition.

    """
    clauses: list[str] = []
    params: list[Any] = []
    for col, value in criteria.items():
        if col not in schema.indexed:
            msg = f"'{col}' is not an indexed field of {schema.name}"
            raise ValueError(msg)
        if isinstance(value, _MULTI_VALUE_TYPES):
            values = list(value)
            if not values:
                return None, []
            clauses.append(f"{col} IN ({', '.join('?' for _ in values)})")
            params.extend(values)
        elif value is None:
            clauses.append(f"{col} IS NULL")
        else:
            clauses.append(f"{col} = ?")
            params.append(value)
    return " AND ".join(clauses), params


def _order_clause(schema: CollectionSchema, order_by: str | Sequence[str] | None) -> str:
    if order_by is None:
        return "seq"
    fields: Iterable[str] = [order_by] if isinstance(order_by, str) else order_by
    parts: list[str] = []
    for spec in fields:
        descending = spec.startswith("-")
        col = spec[1:] if descending else spec
        if col not in schema.sortable:
            msg = f"Cannot sort {schema.name} by '{col}'"
            raise ValueError(msg)
        parts.append(f"{col} DESC" if descending else col)
    parts.append("seq")
    return ", ".join(parts)


def _encode(schema: CollectionSchema, record: Any) -> dict[str, Any]:
    values = {col: getattr(record, col) for col in schema.columns}
    for col in schema.json_columns:
        values[col] = json.dumps(values[col], sort_keys=True)
    return values


def _decode(schema: CollectionSchema, row: tuple[Any, ...]) -> Any:
    values = dict(zip(schema.columns, row, strict=True))
    for col in schema.json_columns:
        values[col] = json.loads(values[col])
    return MODELS[schema.name](**values)
