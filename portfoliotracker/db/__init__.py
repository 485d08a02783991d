"""Portfolio Tracker database layer.

Provides the DuckDB-backed record store for portfolios, holdings,
categories, ticker memory and settings, plus the typed entry points
that enforce the data model's invariants on top of it.
"""
