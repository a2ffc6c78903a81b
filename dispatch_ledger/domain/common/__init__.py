"""Shared abstractions used across domain modules."""

from .exceptions import (
    LedgerConsistencyError,
    SettlementConflictError,
    SettlementError,
    SettlementNotFoundError,
    SettlementValidationError,
)
from .money import format_cents, round_mix1, to_decimal
from .repository import AsyncRepository

__all__ = [
    "AsyncRepository",
    "LedgerConsistencyError",
    "SettlementConflictError",
    "SettlementError",
    "SettlementNotFoundError",
    "SettlementValidationError",
    "format_cents",
    "round_mix1",
    "to_decimal",
]
