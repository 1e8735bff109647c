# Overview: Domain error hierarchy for the inventory ledger.

"""
Ledger errors carry a stable `code`, the HTTP status the controllers map them
to, and an optional `details` dict. Services raise them; they never format
user-facing messages beyond a short reason string.

- InvalidInput       400  rejected before any mutation
- NotFound           404  rejected before any mutation
- InsufficientStock  409  nothing committed (pre-check or rolled back)
- Overpayment        409  customer balance untouched
- InvalidTransition  409  illegal batch status change
"""

from __future__ import annotations


class LedgerError(ValueError):
    """Base class for inventory ledger domain errors."""

    code = "LEDGER_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class InvalidInput(LedgerError):
    code = "INVALID_INPUT"
    status_code = 400


class NotFound(LedgerError):
    code = "NOT_FOUND"
    status_code = 404


class InsufficientStock(LedgerError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409


class Overpayment(LedgerError):
    code = "OVERPAYMENT"
    status_code = 409


class InvalidTransition(LedgerError):
    code = "INVALID_TRANSITION"
    status_code = 409
