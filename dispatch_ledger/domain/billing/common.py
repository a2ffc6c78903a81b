"""Helpers shared by the billing calculators."""

from __future__ import annotations

from decimal import Decimal

from dispatch_ledger.domain.common import SettlementValidationError, round_mix1
from dispatch_ledger.domain.commission import CommissionTable
from dispatch_ledger.domain.orders.models import OrderSnapshot, ParticipantSnapshot, RoundSnapshot

from .models import CandidateRow, SettlementType


def require_participants(order: OrderSnapshot, round_: RoundSnapshot) -> list[ParticipantSnapshot]:
    eligible = round_.eligible_participants()
    if not eligible:
        raise SettlementValidationError(
            "派单记录有误，本轮没有已接单的参与者，无法完成核算",
            order_id=order.id,
            round_id=round_.id,
        )
    return eligible


def split_evenly(
    order: OrderSnapshot,
    round_: RoundSnapshot,
    money_cents: int | Decimal,
    commissions: CommissionTable,
    settlement_type: str = SettlementType.BASE.value,
    *,
    round_share: bool = False,
) -> list[CandidateRow]:
    """Even split of ``money_cents`` among eligible participants, commission applied.

    With ``round_share`` the per-head base is rounded before the multiplier.
    """
    participants = require_participants(order, round_)
    share = Decimal(money_cents) / len(participants)
    if round_share:
        share = Decimal(round_mix1(share))
    return [
        CandidateRow(
            order_id=order.id,
            round_id=round_.id,
            round_no=round_.round_no,
            worker_id=p.worker_id,
            settlement_type=settlement_type,
            calculated_cents=round_mix1(share * commissions.multiplier(p.worker_id)),
        )
        for p in participants
    ]
