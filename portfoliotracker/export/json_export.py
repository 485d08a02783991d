"""JSON export for portfolio data.

Produces a JSON dump of portfolios, holdings, categories and settings
with metadata. ``PortfolioEncoder`` is also the encoder the sidecar
uses for its responses.

"""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import numpy as np

from portfoliotracker.models import Category, Holding, Portfolio, Settings


class PortfolioEncoder(json.JSONEncoder):
    """JSON encoder that handles dataclasses, NumPy types and datetimes."""

    def default(self, o: Any) -> Any:
        """Convert non-serializable types to JSON-safe values."""
        if dataclasses.is_dataclass(o) and not isinstance(o, type):
            return {f.name: getattr(o, f.name) for f in dataclasses.fields(o)}
        if isinstance(o, np.ndarray):
            return o.tolist()
        if isinstance(o, np.integer):
            return int(o)
        if isinstance(o, np.floating):
            return float(o)
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, (set, frozenset)):
            return sorted(o)
        return super().default(o)


def export_portfolio_json(
    portfolios: Sequence[Portfolio] | None = None,
    holdings: Sequence[Holding] | None = None,
    categories: Sequence[Category] | None = None,
    settings: Settings | None = None,
    output_path: str | None = None,
) -> str:
    """Export portfolio data to JSON format.

    Args:
        portfolios: Portfolios to include.
        holdings: Holdings to include.
        categories: Categories to include.
        settings: Settings record to include.
        output_path: File path to write. If None, returns JSON string.

    Returns:
        JSON string, or file path if output_path given.

    """
    now = datetime.now(tz=UTC).isoformat()

    export_data: dict[str, Any] = {
        "metadata": {
            "export_date": now,
            "format_version": "1.0",
            "source": "PortfolioTracker",
        },
    }

    if portfolios is not None:
        export_data["portfolios"] = list(portfolios)
        export_data["metadata"]["portfolios_count"] = len(portfolios)

    if holdings is not None:
        export_data["holdings"] = list(holdings)
        export_data["metadata"]["holdings_count"] = len(holdings)

    if categories is not None:
        export_data["categories"] = list(categories)
        export_data["metadata"]["categories_count"] = len(categories)

    if settings is not None:
        export_data["settings"] = settings

    content = json.dumps(export_data, cls=PortfolioEncoder, indent=2)

    if output_path:
        Path(output_path).write_text(content, encoding="utf-8")
        return output_path
    return content
