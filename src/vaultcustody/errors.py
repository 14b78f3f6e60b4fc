"""
Exception taxonomy for the custody engine.

Build-time errors (QueryError, InsufficientFundsError, SigningError,
CapabilityError) are never retried by the engine. Only network submission
retries locally, and BroadcastError is raised once its budget is spent.
"""

from __future__ import annotations

from decimal import Decimal


class CustodyError(Exception):
    """Base class for all custody engine errors."""


class QueryError(CustodyError):
    """Chain query collaborator unreachable or returned an unusable response."""


class SubmitError(CustodyError):
    """Raw transaction submission failed."""

    def __init__(self, message: str, transient: bool = True):
        super().__init__(message)
        self.transient = transient


class InsufficientFundsError(CustodyError):
    def __init__(self, required: Decimal, available: Decimal):
        super().__init__(f"Insufficient funds: need {required}, have {available}")
        self.required = required
        self.available = available


class SigningError(CustodyError):
    """The signing collaborator rejected the transaction."""


class CapabilityError(CustodyError):
    """Operation requires a signing capability the session does not have."""


class BroadcastError(CustodyError):
    def __init__(self, message: str, last_error: Exception | None = None):
        super().__init__(message)
        self.last_error = last_error


class ChainLinkError(CustodyError, ValueError):
    """Transaction cannot provide a change output for chaining."""


class PrevoutReuseError(CustodyError, RuntimeError):
    """A prevout link was used for more than one build."""
