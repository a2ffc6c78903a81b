"""Flat service-coordinator share appended when an order completes."""

from __future__ import annotations

from decimal import Decimal

from dispatch_ledger.core.config import SettlementSettings
from dispatch_ledger.domain.common import round_mix1, to_decimal
from dispatch_ledger.domain.orders.models import OrderSnapshot

from .models import CandidateRow, SettlementType


def coordinator_row(order: OrderSnapshot, settings: SettlementSettings) -> CandidateRow | None:
    dispatcher = order.dispatcher
    if dispatcher is None or not dispatcher.is_coordinator():
        return None
    if order.product_category in settings.coordinator_excluded_categories:
        return None
    completed = order.completed_round()
    if completed is None:
        return None

    rate = to_decimal(settings.coordinator_rate)
    return CandidateRow(
        order_id=order.id,
        round_id=completed.id,
        round_no=completed.round_no,
        worker_id=dispatcher.id,
        settlement_type=SettlementType.SERVICE_COORDINATOR.value,
        calculated_cents=round_mix1(Decimal(order.base_amount_cents) * rate),
    )
