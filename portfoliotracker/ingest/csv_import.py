"""CSV import pipeline for holdings.

Parses CSV files into normalized holding rows and loads them into the
store. The canonical layout is the one ``export_holdings_csv`` writes::

    portfolio,ticker,quantity,avg_cost,currency,category

Header names are matched flexibly (``symbol`` for ``ticker``,
``shares`` for ``quantity`` and so on) and ``#`` comment lines are
ignored, so exported files and hand-edited spreadsheets both load.

"""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from portfoliotracker.db.category_store import create_category, get_category_by_name
from portfoliotracker.db.portfolio_store import create_holding, create_portfolio
from portfoliotracker.db.record_store import RecordStore
from portfoliotracker.models import (
    BASE_CURRENCY,
    CURRENCIES,
    CUSTOM_CATEGORY_COLOR,
    MAX_TICKER_LENGTH,
    PORTFOLIOS,
    Holding,
    normalize_ticker,
)

logger = logging.getLogger(__name__)

# Known column name variants mapped to our canonical field names
_COLUMN_ALIASES: dict[str, list[str]] = {
    "portfolio": ["portfolio", "portfolio name", "account", "account name"],
    "ticker": ["ticker", "symbol", "asset", "instrument", "security"],
    "quantity": ["quantity", "qty", "shares", "units", "amount"],
    "avg_cost": ["avg_cost", "avg cost", "average cost", "cost per share", "price"],
    "currency": ["currency", "ccy"],
    "category": ["category", "asset class", "type"],
}

_REQUIRED_COLUMNS = {"portfolio", "ticker", "quantity"}


def _normalize_header(header: str) -> str:
    """Normalize a CSV header to lowercase, stripped.

    Args:
        header: Raw column header string.

    Returns:
        Lowercased, stripped header.

    """
    return header.strip().lower()


def _map_columns(raw_headers: list[str]) -> dict[str, int]:
    """Map raw CSV headers to canonical field names.

    Args:
        raw_headers: List of raw header strings from the CSV.

    Returns:
        Dict mapping canonical field name to column index.

    Raises:
        ValueError: If required columns (portfolio, ticker, quantity)
            cannot be found.

    """
    normalized = [_normalize_header(h) for h in raw_headers]
    mapping: dict[str, int] = {}

    for canonical, aliases in _COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in normalized:
                mapping[canonical] = normalized.index(alias)
                break

    missing = _REQUIRED_COLUMNS - set(mapping.keys())
    if missing:
        msg = f"Required columns not found: {sorted(missing)}. Available: {raw_headers}"
        raise ValueError(msg)

    return mapping


def _parse_float(value: str, default: float = 0.0) -> float:
    """Parse a string to float, handling currency symbols and commas.

    Args:
        value: Raw string value.
        default: Default if parsing fails.

    Returns:
        Parsed float value.

    """
    if not value or not value.strip():
        return default
    cleaned = (
        value.strip()
        .replace("A$", "")
        .replace("$", "")
        .replace(",", "")
    )
    try:
        return float(cleaned)
    except ValueError:
        return default


def _cell(row: list[str], col_map: dict[str, int], field: str) -> str:
    idx = col_map.get(field)
    if idx is None or idx >= len(row):
        return ""
    return row[idx].strip()


def parse_holdings_csv(
    file_path: str | Path | None = None,
    csv_content: str | None = None,
) -> list[dict[str, Any]]:
    """Parse a CSV file or string into normalized holding rows.

    Provide either file_path or csv_content, not both. Rows with a blank
    portfolio or ticker, an over-long ticker, a non-positive quantity, a
    negative cost or an unknown currency are skipped and counted in a
    warning.

    Args:
        file_path: Path to the CSV file.
        csv_content: Raw CSV content as a string.

    Returns:
        List of row dicts with keys: portfolio, ticker, quantity,
        avg_cost, currency, category (category may be "").

    Raises:
        ValueError: If neither file_path nor csv_content is provided,
            or if required columns are missing.

    """
    if file_path is None and csv_content is None:
        msg = "Provide either file_path or csv_content"
        raise ValueError(msg)

    if file_path is not None:
        text = Path(file_path).read_text(encoding="utf-8")
    else:
        text = csv_content  # type: ignore[assignment]

    lines = [line for line in text.splitlines() if not line.lstrip().startswith("#")]
    reader = csv.reader(io.StringIO("\n".join(lines)))
    raw_headers = next(reader, None)
    if raw_headers is None:
        msg = "CSV content has no header row"
        raise ValueError(msg)
    col_map = _map_columns(raw_headers)

    rows: list[dict[str, Any]] = []
    skipped = 0

    for row in reader:
        if not any(cell.strip() for cell in row):
            continue

        portfolio = _cell(row, col_map, "portfolio")
        ticker = normalize_ticker(_cell(row, col_map, "ticker"))
        quantity = _parse_float(_cell(row, col_map, "quantity"))
        avg_cost = _parse_float(_cell(row, col_map, "avg_cost"))
        currency = _cell(row, col_map, "currency").upper() or BASE_CURRENCY

        if (
            not portfolio
            or not ticker
            or len(ticker) > MAX_TICKER_LENGTH
            or quantity <= 0
            or avg_cost < 0
            or currency not in CURRENCIES
        ):
            skipped += 1
            continue

        rows.append(
            {
                "portfolio": portfolio,
                "ticker": ticker,
                "quantity": quantity,
                "avg_cost": avg_cost,
                "currency": currency,
                "category": _cell(row, col_map, "category"),
            }
        )

    if skipped:
        logger.warning("Skipped %d invalid rows", skipped)

    logger.info("Parsed %d holdings from CSV", len(rows))
    return rows


def import_holdings(
    store: RecordStore,
    rows: Iterable[dict[str, Any]],
    default_category: str = "Stock",
) -> list[Holding]:
    """Create holdings from parsed rows in a single transaction.

    Portfolios are matched by exact name and created when missing.
    Categories are matched case-insensitively; a row without a category
    uses ``default_category``, and unknown names become new custom
    categories.

    Args:
        store: Record store.
        rows: Rows as returned by ``parse_holdings_csv``.
        default_category: Category name for rows that leave it blank.

    Returns:
        The created holdings.

    """
    created: list[Holding] = []
    with store.transaction():
        portfolio_ids = {p.name: p.id for p in store.all(PORTFOLIOS)}
        for row in rows:
            name = str(row["portfolio"]).strip()
            if name not in portfolio_ids:
                portfolio_ids[name] = create_portfolio(store, name).id

            category_name = str(row.get("category") or default_category).strip()
            category = get_category_by_name(store, category_name)
            if category is None:
                category = create_category(store, category_name, CUSTOM_CATEGORY_COLOR)

            created.append(
                create_holding(
                    store,
                    portfolio_id=portfolio_ids[name],
                    ticker=row["ticker"],
                    quantity=row["quantity"],
                    avg_cost=row["avg_cost"],
                    currency=row.get("currency") or BASE_CURRENCY,
                    category_id=category.id,
                )
            )

    logger.info("Imported %d holdings", len(created))
    return created
