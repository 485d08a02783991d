"""DuckDB connection management for the Portfolio Tracker.

Handles database location, schema creation, and connection lifecycle.
The default on-disk layout is::

    ~/.portfoliotracker/
      data/
        portfolio.duckdb

The data directory can be moved with the ``PORTFOLIO_TRACKER_DATA_DIR``
environment variable.

"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import duckdb

from portfoliotracker.db.schema import ALL_TABLES

logger = logging.getLogger(__name__)

DATA_DIR_ENV = "PORTFOLIO_TRACKER_DATA_DIR"

# Default data directory (can be overridden for testing)
_DEFAULT_DATA_DIR = Path.home() / ".portfoliotracker" / "data"

_DB_FILENAME = "portfolio.duckdb"


def default_db_path() -> Path:
    """Resolve the on-disk database path.

    Returns:
        ``$PORTFOLIO_TRACKER_DATA_DIR/portfolio.duckdb`` when the variable
        is set, otherwise ``~/.portfoliotracker/data/portfolio.duckdb``.

    """
    data_dir = os.environ.get(DATA_DIR_ENV)
    base = Path(data_dir).expanduser() if data_dir else _DEFAULT_DATA_DIR
    return base / _DB_FILENAME


def get_connection(
    db_path: str | Path | None = None,
    read_only: bool = False,
) -> duckdb.DuckDBPyConnection:
    """Open a DuckDB connection.

    Args:
        db_path: Path to the .duckdb file. If None, uses in-memory database.
        read_only: Open in read-only mode.

    Returns:
        Active DuckDB connection.

    """
    if db_path is None:
        return duckdb.connect(":memory:")

    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path), read_only=read_only)


def create_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Run every DDL statement. Safe to repeat (IF NOT EXISTS)."""
    for ddl in ALL_TABLES:
        conn.execute(ddl)


def init_portfolio_db(
    db_path: str | Path | None = None,
) -> duckdb.DuckDBPyConnection:
    """Initialize the portfolio database with schema.

    Creates tables: portfolios, holdings, categories, ticker_memory,
    settings.

    Args:
        db_path: Path to the portfolio.duckdb file.
            Defaults to ``default_db_path()``.

    Returns:
        Initialized DuckDB connection.

    """
    if db_path is None:
        db_path = default_db_path()

    conn = get_connection(db_path)
    create_schema(conn)
    logger.info("Portfolio database initialized at %s", db_path)
    return conn


def init_memory_db() -> duckdb.DuckDBPyConnection:
    """Create an in-memory database with full schema.

    Useful for testing and ephemeral operations.

    Returns:
        In-memory DuckDB connection with all tables created.

    """
    conn = get_connection(None)
    create_schema(conn)
    return conn
