"""Billing calculators: pure functions from an order snapshot to candidate settlement rows."""

from __future__ import annotations

from typing import Mapping

from dispatch_ledger.core.config import SettlementSettings, get_settings
from dispatch_ledger.domain.common import SettlementValidationError
from dispatch_ledger.domain.commission import CommissionTable
from dispatch_ledger.domain.orders.models import BillingPolicy, OrderSnapshot

from .allocated import compute_allocated_settlements
from .coordinator import coordinator_row
from .duration import compute_duration_settlements, resolve_unit_price, round_billable_hours, round_started_at
from .hours import billable_minutes, minutes_to_billable_hours
from .models import CandidateRow, SettlementType
from .quota import compute_quota_settlements


def compute_settlements(
    order: OrderSnapshot,
    allocations: Mapping[str, int] | None = None,
    settings: SettlementSettings | None = None,
) -> list[CandidateRow]:
    settings = settings or get_settings().settlement
    commissions = CommissionTable.from_snapshot(order)

    if order.billing_policy == BillingPolicy.DURATION.value:
        rows = compute_duration_settlements(order, commissions)
    elif order.billing_policy == BillingPolicy.QUOTA.value:
        rows = compute_quota_settlements(order, commissions)
    elif order.billing_policy == BillingPolicy.ALLOCATED.value:
        rows = compute_allocated_settlements(order, commissions, allocations)
    else:
        raise SettlementValidationError(f"未知的计费方式: {order.billing_policy}", order_id=order.id)

    extra = coordinator_row(order, settings)
    if extra is not None:
        rows.append(extra)
    return rows


__all__ = [
    "CandidateRow",
    "SettlementType",
    "billable_minutes",
    "compute_allocated_settlements",
    "compute_duration_settlements",
    "compute_quota_settlements",
    "compute_settlements",
    "coordinator_row",
    "minutes_to_billable_hours",
    "resolve_unit_price",
    "round_billable_hours",
    "round_started_at",
]
