"""Settlement domain specific exceptions."""

from __future__ import annotations

from typing import Any


class SettlementError(Exception):
    """Base class for settlement and wallet-ledger errors."""

    code = "SETTLEMENT_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class SettlementValidationError(SettlementError):
    """Raised when required input is missing or malformed."""

    code = "VALIDATION"


class SettlementConflictError(SettlementError):
    """Raised when another caller owns the round or the order is being settled; resubmit later."""

    code = "CONFLICT"


class LedgerConsistencyError(SettlementError):
    """Raised when ledger invariants are violated; requires manual investigation."""

    code = "CONSISTENCY"


class SettlementNotFoundError(SettlementError):
    """Raised when a referenced order, round or settlement does not exist."""

    code = "NOT_FOUND"
