"""Exceptions raised by the loan calculation engine.

Validation problems found by :func:`loan_engine.validator.validate` are
returned as plain values and never raised. The exceptions below are reserved
for calls that cannot produce a meaningful answer: uncomputable loan terms,
malformed events and numerical solvers that fail to converge.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class LoanEngineError(Exception):
    """Base exception for all loan engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class InvalidLoanTermsError(LoanEngineError, ValueError):
    """Raised when a calculation receives terms it cannot compute.

    ``errors`` holds the :class:`~loan_engine.data_models.ValidationError`
    values describing every structural problem found.
    """

    def __init__(self, errors: List[Any]):
        self.errors = list(errors)
        fields = ", ".join(sorted({e.field for e in self.errors}))
        super().__init__(f"Loan terms cannot be calculated (invalid: {fields})")

    def __str__(self) -> str:
        return self.message


class InvalidEventError(LoanEngineError, ValueError):
    """Raised when a prepayment or modification event is malformed."""

    def __init__(self, errors: List[Any]):
        self.errors = list(errors)
        messages = "; ".join(f"{e.field}: {e.message}" for e in self.errors)
        super().__init__(f"Invalid event ({messages})")

    def __str__(self) -> str:
        return self.message


class ConvergenceError(LoanEngineError):
    """Raised when an iterative solver stops without meeting its tolerance."""

    def __init__(self, message: str, iterations: int, details: Optional[Dict[str, Any]] = None):
        payload = {"iterations": iterations}
        payload.update(details or {})
        super().__init__(message, payload)
        self.iterations = iterations


class AprConvergenceError(ConvergenceError):
    """Raised when the APR solver cannot bracket or isolate a rate."""
