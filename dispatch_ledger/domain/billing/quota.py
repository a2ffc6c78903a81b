"""Quota-based billing.

Archived rounds pay each participant for the quota they moved:
``contribution / (guaranteed_quota / paid_amount)``. Negative contributions
(penalty events) are charged back in full, without commission, and the
charged amount returns to the pool as carried debt. Later positive work first
repays that debt (``CARRY_COMPENSATION``) before ordinary payout (``BASE``).
The completed round shares whatever is left of the pool.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from dispatch_ledger.domain.common import SettlementValidationError, round_mix1
from dispatch_ledger.domain.commission import CommissionTable
from dispatch_ledger.domain.orders.models import OrderSnapshot, ParticipantSnapshot, RoundSnapshot

from .common import require_participants, split_evenly
from .models import CandidateRow, SettlementType


@dataclass(slots=True)
class QuotaLedger:
    pool_cents: int
    consumed_cents: int = 0
    debt_cents: int = 0
    repaid_cents: int = 0

    def charge_penalty(self, amount_cents: int) -> None:
        self.pool_cents += amount_cents
        self.consumed_cents -= amount_cents
        self.debt_cents += amount_cents

    def consume(self, amount_cents: int) -> tuple[int, int]:
        """Take ``amount_cents`` from the pool; returns (repayment, ordinary) parts."""
        amount_cents = min(amount_cents, self.pool_cents)
        self.pool_cents -= amount_cents
        self.consumed_cents += amount_cents
        repayment = min(amount_cents, self.debt_cents)
        self.debt_cents -= repayment
        self.repaid_cents += repayment
        return repayment, amount_cents - repayment


def _row(order: OrderSnapshot, round_: RoundSnapshot, worker_id: str, settlement_type: SettlementType, cents: int) -> CandidateRow:
    return CandidateRow(
        order_id=order.id,
        round_id=round_.id,
        round_no=round_.round_no,
        worker_id=worker_id,
        settlement_type=settlement_type.value,
        calculated_cents=cents,
    )


def _archived_rows(
    order: OrderSnapshot,
    round_: RoundSnapshot,
    participant: ParticipantSnapshot,
    ledger: QuotaLedger,
    commissions: CommissionTable,
    quota: Decimal,
) -> list[CandidateRow]:
    contribution = Decimal(participant.contribution or 0)
    raw = round_mix1(contribution * order.base_amount_cents / quota)

    if raw < 0:
        ledger.charge_penalty(-raw)
        return [_row(order, round_, participant.worker_id, SettlementType.PENALTY, raw)]

    multiplier = commissions.multiplier(participant.worker_id)
    repayment, ordinary = ledger.consume(raw)
    rows = [
        _row(order, round_, participant.worker_id, SettlementType.BASE, round_mix1(ordinary * multiplier)),
    ]
    if repayment:
        rows.append(
            _row(
                order,
                round_,
                participant.worker_id,
                SettlementType.CARRY_COMPENSATION,
                round_mix1(repayment * multiplier),
            )
        )
    return rows


def compute_quota_settlements(order: OrderSnapshot, commissions: CommissionTable) -> list[CandidateRow]:
    quota = order.guaranteed_quota
    if quota is None or Decimal(quota) <= 0:
        raise SettlementValidationError("保底单缺少保底量，无法完成核算", order_id=order.id)
    if order.base_amount_cents <= 0:
        raise SettlementValidationError("保底单实付金额为 0，无法计算比例", order_id=order.id)
    quota = Decimal(quota)

    rows: list[CandidateRow] = []
    ledger = QuotaLedger(pool_cents=order.base_amount_cents)

    for round_ in order.settled_rounds():
        participants = require_participants(order, round_)
        if round_.is_archived:
            for participant in participants:
                rows.extend(_archived_rows(order, round_, participant, ledger, commissions, quota))
        else:
            remaining = ledger.pool_cents
            ledger.consume(remaining)
            rows.extend(split_evenly(order, round_, remaining, commissions))

    return rows
