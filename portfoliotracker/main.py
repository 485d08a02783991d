"""Portfolio Tracker sidecar entry point.

Communicates with the UI process via stdin/stdout using
newline-delimited JSON messages.

Protocol:
    Request:       {"id": "uuid", "method": "string", "params": {}}
    Response:      {"id": "uuid", "result": {}}
    Error:         {"id": "uuid", "error": {"message": "string", "type": "string"}}
    Notification:  {"subscription": "sub-1", "result": {}}

Notifications are pushed for live queries opened with
``live.subscribe``. A notification caused by a request is written
before that request's response.
"""

from __future__ import annotations

import argparse
import json
import sys
import traceback
from collections.abc import Callable, Iterable
from functools import partial
from typing import Any

from portfoliotracker.db import category_store, portfolio_store, settings_store
from portfoliotracker.db import ticker_memory as memory
from portfoliotracker.db.record_store import RecordStore
from portfoliotracker.db.seed import initialize_database
from portfoliotracker.errors import PortfolioTrackerError
from portfoliotracker.export.csv_export import export_holdings_csv
from portfoliotracker.export.json_export import PortfolioEncoder, export_portfolio_json
from portfoliotracker.ingest.csv_import import import_holdings, parse_holdings_csv
from portfoliotracker.live import views
from portfoliotracker.live.queries import LiveQueries, QueryFn, Subscription
from portfoliotracker.market.quotes import fetch_current_price, refresh_exchange_rates
from portfoliotracker.portfolio import valuation

Emit = Callable[[dict[str, Any]], None]


def _stdout_emit(message: dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(message, cls=PortfolioEncoder) + "\n")
    sys.stdout.flush()


class Sidecar:
    """Application root: owns the store, the live query registry and the handlers."""

    def __init__(self, store: RecordStore, emit: Emit = _stdout_emit) -> None:
        self.store = store
        self.live = LiveQueries(store)
        self._emit = emit
        self._subscriptions: dict[str, Subscription] = {}
        self._handlers = self._build_handlers()

    def _build_handlers(self) -> dict[str, Callable[..., Any]]:
        store = self.store
        return {
            "ping": lambda: {"status": "ok"},
            # Portfolios
            "portfolio.create": partial(portfolio_store.create_portfolio, store),
            "portfolio.update": partial(portfolio_store.update_portfolio, store),
            "portfolio.delete": partial(portfolio_store.delete_portfolio, store),
            "portfolio.get": partial(portfolio_store.get_portfolio, store),
            "portfolio.list": partial(portfolio_store.list_portfolios, store),
            # Holdings
            "holding.create": partial(portfolio_store.create_holding, store),
            "holding.create_from_form": self._create_holding_from_form,
            "holding.update": partial(portfolio_store.update_holding, store),
            "holding.delete": partial(portfolio_store.delete_holding, store),
            "holding.get": partial(portfolio_store.get_holding, store),
            "holding.list": partial(portfolio_store.get_holdings, store),
            "holding.list_for_portfolios": partial(
                portfolio_store.get_holdings_for_portfolios, store
            ),
            # Categories
            "category.create": partial(category_store.create_category, store),
            "category.update": partial(category_store.update_category, store),
            "category.delete": partial(category_store.delete_category, store),
            "category.get": partial(category_store.get_category, store),
            "category.get_by_name": partial(category_store.get_category_by_name, store),
            "category.list": partial(category_store.list_categories, store),
            # Ticker memory
            "ticker_memory.suggest": partial(memory.suggest_category, store),
            "ticker_memory.remember": partial(memory.remember_category, store),
            "ticker_memory.forget": partial(memory.forget_ticker, store),
            "ticker_memory.clear": partial(memory.clear_ticker_memory, store),
            "ticker_memory.map": partial(memory.ticker_memory_map, store),
            # Settings
            "settings.get": partial(settings_store.get_settings, store),
            "settings.set_display_currency": partial(
                settings_store.set_display_currency, store
            ),
            "settings.set_theme": partial(settings_store.set_theme, store),
            "settings.toggle_theme": partial(settings_store.toggle_theme, store),
            "settings.set_exchange_rates": partial(
                settings_store.set_exchange_rates, store
            ),
            # Valuation
            "valuation.convert": valuation.convert,
            "valuation.summaries": self._summaries,
            "valuation.group": self._group,
            # Import / export
            "export.holdings_csv": self._export_holdings_csv,
            "export.portfolio_json": self._export_portfolio_json,
            "ingest.csv": self._import_csv,
            # Market data
            "market.price": fetch_current_price,
            "market.refresh_rates": partial(refresh_exchange_rates, store),
            # Live queries
            "live.subscribe": self._subscribe,
            "live.unsubscribe": self._unsubscribe,
        }

    # ── dispatch ──────────────────────────────────────────────────

    def dispatch(self, method: str, params: dict[str, Any]) -> Any:
        """Route a method call to the appropriate handler.

        Args:
            method: The method name (e.g., "holding.create").
            params: The parameters for the method.

        Returns:
            The result of the method call.

        Raises:
            ValueError: If the method is not recognized.

        """
        if method not in self._handlers:
            msg = f"Unknown method: {method}"
            raise ValueError(msg)
        return self._handlers[method](**params)

    def handle_line(self, raw_line: str) -> dict[str, Any] | None:
        """Process one request line and return the response (None for blank lines)."""
        stripped = raw_line.strip()
        if not stripped:
            return None

        request: dict[str, Any] = {}
        try:
            request = json.loads(stripped)
            request_id = request.get("id", "unknown")
            method = request["method"]
            params = request.get("params", {})
            result = self.dispatch(method, params)
            return {"id": request_id, "result": result}
        # Every failure goes back to the caller as an error response
        except Exception as exc:  # noqa: BLE001
            request_id = (
                request.get("id", "unknown") if isinstance(request, dict) else "unknown"
            )
            kind = exc.kind if isinstance(exc, PortfolioTrackerError) else type(exc).__name__
            return {
                "id": request_id,
                "error": {
                    "message": str(exc),
                    "type": kind,
                    "traceback": traceback.format_exc(),
                },
            }

    def serve(self, lines: Iterable[str]) -> None:
        """Answer requests until ``lines`` is exhausted."""
        for raw_line in lines:
            response = self.handle_line(raw_line)
            if response is not None:
                self._emit(response)

    def close(self) -> None:
        self.live.close()
        self._subscriptions.clear()
        self.store.close()

    # ── handlers needing more than the store ──────────────────────

    def _create_holding_from_form(self, **form: Any) -> Any:
        return portfolio_store.create_holding_from_form(
            self.store, portfolio_store.HoldingForm(**form)
        )

    def _holdings_for(self, portfolio_ids: list[str] | None) -> list[Any]:
        if portfolio_ids is None:
            return portfolio_store.get_holdings(self.store)
        return portfolio_store.get_holdings_for_portfolios(self.store, portfolio_ids)

    def _summaries(self, portfolio_ids: list[str] | None = None) -> Any:
        return views.portfolio_summaries(portfolio_ids)(self.store)

    def _group(self, by: str, portfolio_ids: list[str] | None = None) -> Any:
        with self.store.snapshot():
            settings = settings_store.get_settings(self.store)
            holdings = self._holdings_for(portfolio_ids)
            categories = category_store.list_categories(self.store)
        currency, rates = settings.display_currency, settings.exchange_rates
        if by == "category":
            return valuation.group_by_category(holdings, categories, currency, rates)
        if by == "currency":
            return valuation.group_by_currency(holdings, currency, rates)
        if by == "asset":
            return valuation.group_by_asset(holdings, currency, rates)
        msg = f"by must be 'category', 'currency' or 'asset', got '{by}'"
        raise ValueError(msg)

    def _export_holdings_csv(
        self,
        portfolio_ids: list[str] | None = None,
        output_path: str | None = None,
    ) -> str:
        with self.store.snapshot():
            holdings = self._holdings_for(portfolio_ids)
            portfolios = portfolio_store.list_portfolios(self.store)
            categories = category_store.list_categories(self.store)
        return export_holdings_csv(holdings, portfolios, categories, output_path=output_path)

    def _export_portfolio_json(self, output_path: str | None = None) -> str:
        with self.store.snapshot():
            return export_portfolio_json(
                portfolios=portfolio_store.list_portfolios(self.store),
                holdings=portfolio_store.get_holdings(self.store),
                categories=category_store.list_categories(self.store),
                settings=settings_store.get_settings(self.store),
                output_path=output_path,
            )

    def _import_csv(
        self,
        file_path: str | None = None,
        csv_content: str | None = None,
    ) -> dict[str, Any]:
        rows = parse_holdings_csv(file_path=file_path, csv_content=csv_content)
        created = import_holdings(self.store, rows)
        return {"imported": len(created)}

    def _subscribe(
        self,
        view: str,
        portfolio_id: str | None = None,
        portfolio_ids: list[str] | None = None,
    ) -> dict[str, Any]:
        query = self._view(view, portfolio_id, portfolio_ids)
        box: dict[str, str] = {}

        def push(result: Any) -> None:
            # The first result is returned in the response instead
            if "id" in box:
                self._emit({"subscription": box["id"], "result": result})

        def push_error(exc: Exception) -> None:
            self._emit({"subscription": box["id"], "error": {"message": str(exc)}})

        sub = self.live.subscribe(query, on_result=push, on_error=push_error)
        sub_id = f"sub-{sub.id}"
        box["id"] = sub_id
        self._subscriptions[sub_id] = sub
        return {"subscription_id": sub_id, "result": sub.value}

    def _unsubscribe(self, subscription_id: str) -> dict[str, bool]:
        sub = self._subscriptions.pop(subscription_id, None)
        if sub is None:
            return {"unsubscribed": False}
        sub.unsubscribe()
        return {"unsubscribed": True}

    @staticmethod
    def _view(
        view: str,
        portfolio_id: str | None,
        portfolio_ids: list[str] | None,
    ) -> QueryFn:
        if view == "holdings":
            return views.portfolio_holdings(portfolio_id)
        if view == "selected_holdings":
            return views.selected_holdings(portfolio_ids or [])
        if view == "summaries":
            return views.portfolio_summaries(portfolio_ids)
        simple: dict[str, QueryFn] = {
            "portfolios": views.all_portfolios,
            "categories": views.all_categories,
            "ticker_memory": views.ticker_memory,
            "settings": views.current_settings,
        }
        if view not in simple:
            msg = f"Unknown live view: {view}"
            raise ValueError(msg)
        return simple[view]


def main(argv: list[str] | None = None) -> None:
    """Run the sidecar message loop.

    Reads newline-delimited JSON from stdin, dispatches to handlers,
    and writes JSON responses to stdout. Runs indefinitely until
    stdin is closed.
    """
    parser = argparse.ArgumentParser(description="Portfolio Tracker sidecar")
    parser.add_argument(
        "--db-path",
        default=None,
        help="DuckDB file (default: $PORTFOLIO_TRACKER_DATA_DIR or ~/.portfoliotracker/data)",
    )
    parser.add_argument(
        "--in-memory",
        action="store_true",
        help="Use a throwaway in-memory database",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args(argv)

    from portfoliotracker.log_config import setup as setup_logging

    setup_logging(verbose=args.verbose)

    store = RecordStore.in_memory() if args.in_memory else RecordStore.open(args.db_path)
    initialize_database(store)
    sidecar = Sidecar(store)
    try:
        sidecar.serve(sys.stdin)
    finally:
        sidecar.close()


if __name__ == "__main__":
    main()
