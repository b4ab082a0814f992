"""
Exception hierarchy for the sales tax engine.

Only two failure kinds ever leave a calculation: malformed input and an
unavailable external tax provider. Unknown jurisdictions, closed rollout
gates and missing nexus are ordinary zero-tax outcomes, not errors.
"""

from __future__ import annotations


class TaxEngineError(Exception):
    """Base class for all engine errors."""


class InvalidInputError(TaxEngineError, ValueError):
    """Product, price, quantity or buyer location has the wrong shape or type."""


class TaxProviderUnavailableError(TaxEngineError):
    """The external tax provider could not produce a rate for this sale."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
