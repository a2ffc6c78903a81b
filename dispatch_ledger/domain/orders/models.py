"""Read-only order snapshots consumed by the settlement engine.

A snapshot is loaded once per settlement run (order, rounds, participants,
pricing and worker-tier data) and never re-fetched mid-calculation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class BillingPolicy(str, Enum):
    DURATION = "DURATION"
    QUOTA = "QUOTA"
    ALLOCATED = "ALLOCATED"


class RoundStatus(str, Enum):
    WAIT_ASSIGN = "WAIT_ASSIGN"
    WAIT_ACCEPT = "WAIT_ACCEPT"
    ACCEPTED = "ACCEPTED"
    SETTLING = "SETTLING"
    ARCHIVED = "ARCHIVED"
    COMPLETED = "COMPLETED"


SETTLED_ROUND_STATUSES = frozenset({RoundStatus.ARCHIVED.value, RoundStatus.COMPLETED.value})


@dataclass(slots=True, frozen=True)
class WorkerSnapshot:
    id: str
    name: str
    role: str = "worker"
    tier_rate: Optional[Decimal] = None

    def is_coordinator(self) -> bool:
        return self.role == "coordinator"


@dataclass(slots=True, frozen=True)
class ParticipantSnapshot:
    id: str
    worker: WorkerSnapshot
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    contribution: Optional[Decimal] = None
    is_active: bool = True

    @property
    def worker_id(self) -> str:
        return self.worker.id

    def is_eligible(self) -> bool:
        """Currently assigned and accepted the round."""
        return self.is_active and self.accepted_at is not None


@dataclass(slots=True, frozen=True)
class RoundSnapshot:
    id: str
    round_no: int
    status: str
    participants: tuple[ParticipantSnapshot, ...] = ()
    accepted_all_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    deduct_minutes: int = 0
    billable_minutes: Optional[int] = None
    billable_hours: Optional[Decimal] = None
    allocated_income_cents: Optional[int] = None

    @property
    def is_archived(self) -> bool:
        return self.status == RoundStatus.ARCHIVED.value

    @property
    def is_completed(self) -> bool:
        return self.status == RoundStatus.COMPLETED.value

    @property
    def end_at(self) -> Optional[datetime]:
        return self.completed_at if self.is_completed else self.archived_at

    def eligible_participants(self) -> list[ParticipantSnapshot]:
        return [p for p in self.participants if p.is_eligible()]


@dataclass(slots=True, frozen=True)
class OrderSnapshot:
    id: str
    billing_policy: str
    paid_amount_cents: int
    receivable_amount_cents: int = 0
    is_gifted: bool = False
    status: str = "PENDING"
    ordered_hours: Optional[Decimal] = None
    guaranteed_quota: Optional[Decimal] = None
    commission_rate: Optional[Decimal] = None
    product_category: str = "REGULAR"
    product_price_cents: Optional[int] = None
    product_commission_rate: Optional[Decimal] = None
    dispatcher: Optional[WorkerSnapshot] = None
    rounds: tuple[RoundSnapshot, ...] = field(default_factory=tuple)

    @property
    def base_amount_cents(self) -> int:
        """Amount to distribute; gifted orders carry no payment so use the receivable amount."""
        return self.receivable_amount_cents if self.is_gifted else self.paid_amount_cents

    def ordered_rounds(self) -> list[RoundSnapshot]:
        return sorted(self.rounds, key=lambda r: r.round_no)

    def settled_rounds(self) -> list[RoundSnapshot]:
        return [r for r in self.ordered_rounds() if r.status in SETTLED_ROUND_STATUSES]

    def completed_round(self) -> Optional[RoundSnapshot]:
        for round_ in self.ordered_rounds():
            if round_.is_completed:
                return round_
        return None

    def find_round(self, round_id: str) -> Optional[RoundSnapshot]:
        for round_ in self.rounds:
            if round_.id == round_id:
                return round_
        return None
