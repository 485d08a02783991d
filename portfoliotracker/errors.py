"""Typed failures raised by the record store and valuation engine.

Every error the core raises for a data-model reason derives from
``PortfolioTrackerError`` so the sidecar can report it with its kind.
Plain argument validation (empty names, bad colours, non-positive
quantities) raises ``ValueError`` instead.
"""

from __future__ import annotations


class PortfolioTrackerError(Exception):
    """Base class for all core errors."""

    kind = "error"


class NotFoundError(PortfolioTrackerError, LookupError):
    """An update or delete referenced an id that does not exist."""

    kind = "not_found"

    def __init__(self, collection: str, key: str) -> None:
        self.collection = collection
        self.key = key
        super().__init__(f"{collection} record '{key}' not found")


class ProtectedEntityError(PortfolioTrackerError):
    """A delete targeted a protected (default) category."""

    kind = "protected_entity"

    def __init__(self, collection: str, key: str) -> None:
        self.collection = collection
        self.key = key
        super().__init__(f"{collection} record '{key}' is protected and cannot be deleted")


class DanglingReferenceError(PortfolioTrackerError, ValueError):
    """A write would leave a reference pointing at a missing row."""

    kind = "dangling_reference"

    def __init__(self, field: str, target: str, key: str) -> None:
        self.field = field
        self.target = target
        self.key = key
        super().__init__(f"{field} '{key}' does not reference an existing {target} record")


class MissingRateError(PortfolioTrackerError, KeyError):
    """A conversion needed a currency that is absent from the rate table."""

    kind = "missing_rate"

    def __init__(self, currency: str) -> None:
        self.currency = currency
        super().__init__(f"No exchange rate for currency '{currency}'")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0])


class InvariantViolationError(PortfolioTrackerError):
    """An internal consistency check failed."""

    kind = "invariant_violation"
