"""DuckDB schema definitions for the Portfolio Tracker store.

Contains DDL statements for the five record collections:
- portfolios: Named groups of holdings
- holdings: Current position per asset and portfolio
- categories: Default (protected) and custom holding tags
- ticker_memory: Last category assigned to each ticker
- settings: The single settings record

Every table carries a ``seq`` column drawn from one shared sequence so
unsorted reads come back in insertion order. Updates keep the original
``seq``.

"""

from __future__ import annotations

from dataclasses import dataclass, field

from portfoliotracker.models import (
    CATEGORIES,
    HOLDINGS,
    PORTFOLIOS,
    SETTINGS,
    TICKER_MEMORY,
)

CREATE_RECORD_SEQUENCE = "CREATE SEQUENCE IF NOT EXISTS record_seq START 1;"

# ── Portfolios ──

CREATE_PORTFOLIOS = """
CREATE TABLE IF NOT EXISTS portfolios (
    id           VARCHAR PRIMARY KEY,
    name         VARCHAR NOT NULL,
    created_at   TIMESTAMP NOT NULL,
    updated_at   TIMESTAMP NOT NULL,
    seq          BIGINT NOT NULL DEFAULT nextval('record_seq')
);
"""

# ── Holdings ──

CREATE_HOLDINGS = """
CREATE TABLE IF NOT EXISTS holdings (
    id           VARCHAR PRIMARY KEY,
    portfolio_id VARCHAR NOT NULL,
    ticker       VARCHAR NOT NULL,
    quantity     DOUBLE NOT NULL,
    avg_cost     DOUBLE NOT NULL,
    currency     VARCHAR NOT NULL,
    category_id  VARCHAR NOT NULL,
    created_at   TIMESTAMP NOT NULL,
    updated_at   TIMESTAMP NOT NULL,
    seq          BIGINT NOT NULL DEFAULT nextval('record_seq')
);
"""

# ── Categories ──

CREATE_CATEGORIES = """
CREATE TABLE IF NOT EXISTS categories (
    id           VARCHAR PRIMARY KEY,
    name         VARCHAR NOT NULL,
    color        VARCHAR NOT NULL,
    is_default   BOOLEAN NOT NULL DEFAULT false,
    seq          BIGINT NOT NULL DEFAULT nextval('record_seq')
);
"""

# ── Ticker Memory ──

CREATE_TICKER_MEMORY = """
CREATE TABLE IF NOT EXISTS ticker_memory (
    ticker       VARCHAR PRIMARY KEY,
    category_id  VARCHAR NOT NULL,
    seq          BIGINT NOT NULL DEFAULT nextval('record_seq')
);
"""

# ── Settings ──

CREATE_SETTINGS = """
CREATE TABLE IF NOT EXISTS settings (
    id                VARCHAR PRIMARY KEY,
    display_currency  VARCHAR NOT NULL,
    theme             VARCHAR NOT NULL,
    exchange_rates    VARCHAR NOT NULL,
    last_rate_update  TIMESTAMP,
    seq               BIGINT NOT NULL DEFAULT nextval('record_seq')
);
"""

# ── Secondary indexes ──

CREATE_INDEXES: list[str] = [
    "CREATE INDEX IF NOT EXISTS idx_portfolios_name ON portfolios (name);",
    "CREATE INDEX IF NOT EXISTS idx_holdings_portfolio ON holdings (portfolio_id);",
    "CREATE INDEX IF NOT EXISTS idx_holdings_category ON holdings (category_id);",
    "CREATE INDEX IF NOT EXISTS idx_holdings_ticker ON holdings (ticker);",
    "CREATE INDEX IF NOT EXISTS idx_categories_name ON categories (name);",
    "CREATE INDEX IF NOT EXISTS idx_categories_default ON categories (is_default);",
    "CREATE INDEX IF NOT EXISTS idx_ticker_memory_category ON ticker_memory (category_id);",
]

# All DDL statements in creation order
ALL_TABLES: list[str] = [
    CREATE_RECORD_SEQUENCE,
    CREATE_PORTFOLIOS,
    CREATE_HOLDINGS,
    CREATE_CATEGORIES,
    CREATE_TICKER_MEMORY,
    CREATE_SETTINGS,
    *CREATE_INDEXES,
]


@dataclass(frozen=True)
class CollectionSchema:
    """Column layout and lookup rules for one collection.

    Attributes:
        name: Collection (and table) name.
        key: Primary key column.
        columns: Record columns in model field order (``seq`` excluded).
        indexed: Columns usable in ``RecordStore.query`` criteria.
        json_columns: Columns stored as JSON text.
        references: Column -> collection that must contain the value.

    """

    name: str
    key: str
    columns: tuple[str, ...]
    indexed: frozenset[str]
    json_columns: frozenset[str] = frozenset()
    references: dict[str, str] = field(default_factory=dict)

    @property
    def sortable(self) -> frozenset[str]:
        return frozenset(self.columns) | {"seq"}


COLLECTIONS: dict[str, CollectionSchema] = {
    PORTFOLIOS: CollectionSchema(
        name=PORTFOLIOS,
        key="id",
        columns=("id", "name", "created_at", "updated_at"),
        indexed=frozenset({"id", "name"}),
    ),
    HOLDINGS: CollectionSchema(
        name=HOLDINGS,
        key="id",
        columns=(
            "id",
            "portfolio_id",
            "ticker",
            "quantity",
            "avg_cost",
            "currency",
            "category_id",
            "created_at",
            "updated_at",
        ),
        indexed=frozenset({"id", "portfolio_id", "category_id", "ticker", "currency"}),
        references={"portfolio_id": PORTFOLIOS, "category_id": CATEGORIES},
    ),
    CATEGORIES: CollectionSchema(
        name=CATEGORIES,
        key="id",
        columns=("id", "name", "color", "is_default"),
        indexed=frozenset({"id", "name", "is_default"}),
    ),
    TICKER_MEMORY: CollectionSchema(
        name=TICKER_MEMORY,
        key="ticker",
        columns=("ticker", "category_id"),
        indexed=frozenset({"ticker", "category_id"}),
    ),
    SETTINGS: CollectionSchema(
        name=SETTINGS,
        key="id",
        columns=(
            "id",
            "display_currency",
            "theme",
            "exchange_rates",
            "last_rate_update",
        ),
        indexed=frozenset({"id"}),
        json_columns=frozenset({"exchange_rates"}),
    ),
}
