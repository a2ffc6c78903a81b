"""Settlement ledger records."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from dispatch_ledger.domain.orders.models import RoundStatus
from dispatch_ledger.domain.wallets.models import SyncResult


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"


class SettlementOutcome(str, Enum):
    ARCHIVE = "ARCHIVE"
    COMPLETE = "COMPLETE"

    @property
    def round_status(self) -> RoundStatus:
        return RoundStatus.ARCHIVED if self is SettlementOutcome.ARCHIVE else RoundStatus.COMPLETED


def new_batch_id(prefix: str = "SETTLE") -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


@dataclass(slots=True)
class SettlementRecord:
    id: str
    order_id: str
    round_id: str
    worker_id: str
    settlement_type: str
    batch_id: str
    calculated_cents: int
    adjustment_cents: int
    final_cents: int
    payment_status: str
    settled_at: Optional[datetime]
    paid_at: Optional[datetime]

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.round_id, self.worker_id, self.settlement_type)


@dataclass(slots=True)
class SettleResult:
    order_id: str
    round_id: str
    outcome: SettlementOutcome
    batch_id: str
    records: list[SettlementRecord] = field(default_factory=list)
    wallet_results: list[SyncResult] = field(default_factory=list)
    unlock_at: Optional[datetime] = None
