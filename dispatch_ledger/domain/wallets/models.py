"""Wallet ledger records.

A transaction's amount is always a non-negative magnitude. Its direction and
status together decide the signed effect on the two balance buckets.
Release and refund-reversal rows are markers: the bucket movement they
document is carried by the status of the transaction they point at.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class TxDirection(str, Enum):
    IN = "IN"
    OUT = "OUT"


class TxStatus(str, Enum):
    FROZEN = "FROZEN"
    AVAILABLE = "AVAILABLE"
    REVERSED = "REVERSED"


class HoldStatus(str, Enum):
    FROZEN = "FROZEN"
    RELEASED = "RELEASED"
    CANCELLED = "CANCELLED"


class BizType(str, Enum):
    SETTLEMENT_EARNING = "SETTLEMENT_EARNING"
    SETTLEMENT_DEBIT = "SETTLEMENT_DEBIT"
    RELEASE_FROZEN = "RELEASE_FROZEN"
    REFUND_REVERSAL = "REFUND_REVERSAL"


class SourceType(str, Enum):
    ORDER_SETTLEMENT = "ORDER_SETTLEMENT"
    WALLET_HOLD_RELEASE = "WALLET_HOLD_RELEASE"
    REFUND_REVERSAL = "REFUND_REVERSAL"


MARKER_BIZ_TYPES = frozenset({BizType.RELEASE_FROZEN.value, BizType.REFUND_REVERSAL.value})


class SyncAction(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    UNCHANGED = "UNCHANGED"
    REVERSED = "REVERSED"
    REVIVED = "REVIVED"
    SKIPPED = "SKIPPED"


@dataclass(slots=True, frozen=True)
class BalanceDelta:
    available_cents: int = 0
    frozen_cents: int = 0

    def __add__(self, other: "BalanceDelta") -> "BalanceDelta":
        return BalanceDelta(
            self.available_cents + other.available_cents,
            self.frozen_cents + other.frozen_cents,
        )

    def __neg__(self) -> "BalanceDelta":
        return BalanceDelta(-self.available_cents, -self.frozen_cents)

    @property
    def is_zero(self) -> bool:
        return self.available_cents == 0 and self.frozen_cents == 0


def signed_effect(direction: str, status: str, biz_type: str, amount_cents: int) -> BalanceDelta:
    if status == TxStatus.REVERSED.value or biz_type in MARKER_BIZ_TYPES:
        return BalanceDelta()
    sign = 1 if direction == TxDirection.IN.value else -1
    if status == TxStatus.FROZEN.value:
        return BalanceDelta(0, sign * amount_cents)
    return BalanceDelta(sign * amount_cents, 0)


@dataclass(slots=True)
class WalletAccountSnapshot:
    user_id: str
    available_cents: int
    frozen_cents: int
    updated_at: Optional[datetime] = None

    @property
    def total_cents(self) -> int:
        return self.available_cents + self.frozen_cents


@dataclass(slots=True)
class WalletTransactionRecord:
    id: str
    user_id: str
    direction: str
    biz_type: str
    amount_cents: int
    status: str
    source_type: str
    source_id: str
    order_id: Optional[str]
    round_id: Optional[str]
    settlement_id: Optional[str]
    reversal_of_tx_id: Optional[str]
    available_after_cents: Optional[int]
    frozen_after_cents: Optional[int]
    created_at: Optional[datetime]

    @property
    def effect(self) -> BalanceDelta:
        return signed_effect(self.direction, self.status, self.biz_type, self.amount_cents)


@dataclass(slots=True)
class WalletHoldRecord:
    id: str
    user_id: str
    earning_tx_id: str
    amount_cents: int
    status: str
    unlock_at: datetime
    released_at: Optional[datetime]


@dataclass(slots=True)
class SyncResult:
    action: SyncAction
    transaction: Optional[WalletTransactionRecord]
    delta: BalanceDelta


@dataclass(slots=True)
class Reconciliation:
    user_id: str
    expected_available_cents: int
    expected_frozen_cents: int
    actual_available_cents: int
    actual_frozen_cents: int
    holds_consistent: bool

    @property
    def is_balanced(self) -> bool:
        return (
            self.expected_available_cents == self.actual_available_cents
            and self.expected_frozen_cents == self.actual_frozen_cents
            and self.holds_consistent
        )
