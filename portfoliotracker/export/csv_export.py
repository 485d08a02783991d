"""CSV export for holdings.

Writes one row per holding in the same column layout that
``portfoliotracker.ingest.csv_import`` reads back, preceded by ``#``
metadata lines with the export title and time.

"""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

from portfoliotracker.models import Category, Holding, Portfolio

HOLDINGS_FIELDNAMES = ["portfolio", "ticker", "quantity", "avg_cost", "currency", "category"]


def export_holdings_csv(
    holdings: Sequence[Holding],
    portfolios: Sequence[Portfolio],
    categories: Sequence[Category],
    output_path: str | None = None,
) -> str:
    """Export holdings to CSV format.

    Portfolio and category ids are written as names so the file can be
    imported into another store.

    Args:
        holdings: Holdings to export.
        portfolios: Portfolios used to resolve ``portfolio_id`` to a name.
        categories: Categories used to resolve ``category_id`` to a name.
        output_path: File path to write. If None, returns CSV string.

    Returns:
        The CSV content as a string, or file path if output_path given.

    """
    portfolio_names = {p.id: p.name for p in portfolios}
    category_names = {c.id: c.name for c in categories}

    output = io.StringIO()
    _write_metadata_header(output, "Holdings Export", extra=f"Holdings: {len(holdings)}")

    writer = csv.DictWriter(output, fieldnames=HOLDINGS_FIELDNAMES)
    writer.writeheader()
    for holding in holdings:
        writer.writerow(
            {
                "portfolio": portfolio_names.get(holding.portfolio_id, ""),
                "ticker": holding.ticker,
                "quantity": repr(holding.quantity),
                "avg_cost": repr(holding.avg_cost),
                "currency": holding.currency,
                "category": category_names.get(holding.category_id, ""),
            }
        )

    content = output.getvalue()
    if output_path:
        Path(output_path).write_text(content, encoding="utf-8")
        return output_path
    return content


def _write_metadata_header(
    output: io.StringIO,
    title: str,
    extra: str = "",
) -> None:
    """Write metadata comment lines at the top of a CSV export.

    Args:
        output: StringIO buffer to write to.
        title: Export title.
        extra: Optional additional metadata line.

    """
    now = datetime.now(tz=UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
    output.write(f"# {title}\n")
    output.write(f"# Generated: {now}\n")
    if extra:
        output.write(f"# {extra}\n")
