"""Side-by-side comparison of stored settlement rows and a fresh recompute.

Recomputed rows replace manual adjustments, so the expected final amount of
every item equals its expected calculated amount. Negative expected amounts
are penalty income for the platform.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from dispatch_ledger.domain.billing import CandidateRow
from dispatch_ledger.domain.orders.models import OrderSnapshot
from dispatch_ledger.domain.settlements.models import SettlementRecord


class PlanNote(str, Enum):
    CREATE = "CREATE"
    DELETE = "DELETE"
    ADJUSTMENT_ONLY = "ADJUSTMENT_ONLY"


@dataclass(slots=True)
class PlanItem:
    round_id: str
    round_no: Optional[int]
    worker_id: str
    settlement_type: str
    settlement_id: Optional[str]
    old_calculated_cents: int
    old_adjustment_cents: int
    old_final_cents: int
    expected_calculated_cents: int
    expected_final_cents: int
    delta_cents: int
    note: Optional[str]


@dataclass(slots=True)
class Subtotal:
    payout_cents: int = 0
    penalty_income_cents: int = 0

    def add(self, amount_cents: int) -> None:
        if amount_cents > 0:
            self.payout_cents += amount_cents
        elif amount_cents < 0:
            self.penalty_income_cents += -amount_cents

    @property
    def net_cents(self) -> int:
        return self.payout_cents - self.penalty_income_cents


@dataclass(slots=True)
class RoundPlan:
    round_id: str
    round_no: Optional[int]
    status: Optional[str]
    subtotal: Subtotal = field(default_factory=Subtotal)
    items: list[PlanItem] = field(default_factory=list)


@dataclass(slots=True)
class PlanSummary:
    income_cents: int
    payout_cents: int
    penalty_income_cents: int

    @property
    def platform_net_cents(self) -> int:
        return self.income_cents - self.payout_cents + self.penalty_income_cents


@dataclass(slots=True)
class ComparisonPlan:
    summary: PlanSummary
    items: list[PlanItem]
    rounds: list[RoundPlan]

    @property
    def has_changes(self) -> bool:
        return any(item.note is not None or item.delta_cents for item in self.items)


def _note(old: Optional[SettlementRecord], new: Optional[CandidateRow], delta: int) -> Optional[str]:
    if old is None:
        return PlanNote.CREATE.value
    if new is None:
        return PlanNote.DELETE.value
    if delta == 0 and old.adjustment_cents != 0:
        return PlanNote.ADJUSTMENT_ONLY.value
    return None


def build_comparison_plan(
    order: OrderSnapshot,
    existing: Iterable[SettlementRecord],
    candidates: Iterable[CandidateRow],
) -> ComparisonPlan:
    old_by_key = {record.key: record for record in existing}
    new_by_key = {row.key: row for row in candidates}
    round_meta = {round_.id: round_ for round_ in order.rounds}

    items: list[PlanItem] = []
    for key in old_by_key.keys() | new_by_key.keys():
        old = old_by_key.get(key)
        new = new_by_key.get(key)
        round_id, worker_id, settlement_type = key
        meta = round_meta.get(round_id)

        old_final = old.final_cents if old else 0
        expected = new.calculated_cents if new else 0
        delta = expected - old_final
        items.append(
            PlanItem(
                round_id=round_id,
                round_no=meta.round_no if meta else None,
                worker_id=worker_id,
                settlement_type=settlement_type,
                settlement_id=old.id if old else None,
                old_calculated_cents=old.calculated_cents if old else 0,
                old_adjustment_cents=old.adjustment_cents if old else 0,
                old_final_cents=old_final,
                expected_calculated_cents=expected,
                expected_final_cents=expected,
                delta_cents=delta,
                note=_note(old, new, delta),
            )
        )

    items.sort(
        key=lambda item: (
            item.round_no if item.round_no is not None else 10**9,
            item.round_id,
            item.worker_id,
            item.settlement_type,
        )
    )

    total = Subtotal()
    rounds: dict[str, RoundPlan] = {}
    for item in items:
        total.add(item.expected_final_cents)
        plan = rounds.get(item.round_id)
        if plan is None:
            meta = round_meta.get(item.round_id)
            plan = rounds[item.round_id] = RoundPlan(
                round_id=item.round_id,
                round_no=item.round_no,
                status=meta.status if meta else None,
            )
        plan.subtotal.add(item.expected_final_cents)
        plan.items.append(item)

    summary = PlanSummary(
        income_cents=order.base_amount_cents,
        payout_cents=total.payout_cents,
        penalty_income_cents=total.penalty_income_cents,
    )
    return ComparisonPlan(summary=summary, items=items, rounds=list(rounds.values()))
