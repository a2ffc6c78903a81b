"""Duration-based billing: archived rounds consume hours × unit price from the
paid pool, the completed round absorbs whatever remains."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from dispatch_ledger.domain.common import SettlementValidationError, round_mix1
from dispatch_ledger.domain.commission import CommissionTable
from dispatch_ledger.domain.orders.models import OrderSnapshot, RoundSnapshot

from .common import require_participants, split_evenly
from .hours import billable_minutes, minutes_to_billable_hours
from .models import CandidateRow

logger = logging.getLogger(__name__)


def resolve_unit_price(order: OrderSnapshot) -> int:
    """Hourly price in cents: the paid mean price, never above the product list price."""
    product_price = order.product_price_cents
    ordered_hours = order.ordered_hours
    if ordered_hours is not None and Decimal(ordered_hours) > 0:
        mean_price = round_mix1(Decimal(order.base_amount_cents) / Decimal(ordered_hours))
        if product_price is not None and product_price < mean_price:
            return product_price
        return mean_price
    if product_price is None:
        raise SettlementValidationError("小时单缺少单价与下单时长，无法完成核算", order_id=order.id)
    return product_price


def round_started_at(round_: RoundSnapshot) -> Optional[datetime]:
    accepted = [p.accepted_at for p in round_.eligible_participants() if p.accepted_at is not None]
    return min(accepted) if accepted else round_.accepted_all_at


def round_billable_hours(round_: RoundSnapshot) -> Decimal:
    # 优先使用已落库的计费时长
    if round_.billable_hours is not None:
        return Decimal(round_.billable_hours)
    minutes = billable_minutes(round_started_at(round_), round_.end_at, round_.deduct_minutes)
    return minutes_to_billable_hours(minutes)


def compute_duration_settlements(order: OrderSnapshot, commissions: CommissionTable) -> list[CandidateRow]:
    rows: list[CandidateRow] = []
    unit_price = resolve_unit_price(order)
    pool = order.base_amount_cents

    for round_ in order.settled_rounds():
        require_participants(order, round_)
        if round_.is_archived:
            hours = round_billable_hours(round_)
            money = min(round_mix1(hours * unit_price), pool)
            pool -= money
        else:
            money = pool
            pool = 0
        logger.debug("Order %s round %s allocated %s cents, pool left %s", order.id, round_.round_no, money, pool)
        rows.extend(split_evenly(order, round_, money, commissions, round_share=True))

    return rows
