"""Externally-allocated billing: operators enter each round's income."""

from __future__ import annotations

from typing import Mapping

from dispatch_ledger.domain.common import SettlementValidationError
from dispatch_ledger.domain.commission import CommissionTable
from dispatch_ledger.domain.orders.models import OrderSnapshot, RoundSnapshot

from .common import split_evenly
from .models import CandidateRow


def round_income(order: OrderSnapshot, round_: RoundSnapshot, allocations: Mapping[str, int] | None) -> int:
    """Income of one round: the operator table first, then the amount stored when the round settled."""
    if allocations is not None and round_.id in allocations:
        income = int(allocations[round_.id])
    elif round_.allocated_income_cents is not None:
        income = round_.allocated_income_cents
    elif allocations is None:
        raise SettlementValidationError("缺少轮次收益分配表，无法核算", order_id=order.id, round_id=round_.id)
    else:
        income = 0
    if income < 0:
        raise SettlementValidationError("轮次收益不能为负数", order_id=order.id, round_id=round_.id)
    return income


def compute_allocated_settlements(
    order: OrderSnapshot,
    commissions: CommissionTable,
    allocations: Mapping[str, int] | None,
) -> list[CandidateRow]:
    unknown = set(allocations or {}) - {r.id for r in order.rounds}
    if unknown:
        raise SettlementValidationError("收益分配表包含不属于该订单的轮次", order_id=order.id, round_ids=sorted(unknown))

    rows: list[CandidateRow] = []
    for round_ in order.settled_rounds():
        rows.extend(split_evenly(order, round_, round_income(order, round_, allocations), commissions))
    return rows
