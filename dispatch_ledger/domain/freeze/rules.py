"""Freeze window: when settlement earnings become withdrawable."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from dispatch_ledger.core.clock import ensure_utc
from dispatch_ledger.core.config import SettlementSettings
from dispatch_ledger.domain.common import LedgerConsistencyError
from dispatch_ledger.domain.orders.models import OrderSnapshot


@dataclass(slots=True, frozen=True)
class FreezeWindow:
    start_at: datetime
    unlock_at: datetime
    days: int
    from_fallback: bool = False


def freeze_days_for(category: str | None, settings: SettlementSettings) -> int:
    if category in settings.promotional_categories:
        return settings.promotional_freeze_days
    return settings.default_freeze_days


def compute_freeze_window(
    order: OrderSnapshot,
    settings: SettlementSettings,
    *,
    allow_acceptance_fallback: bool | None = None,
) -> FreezeWindow:
    """Unlock time = completion of the COMPLETED round + 3 or 7 days by product category."""
    fallback = settings.allow_acceptance_fallback if allow_acceptance_fallback is None else allow_acceptance_fallback

    completed = order.completed_round()
    if completed is None:
        raise LedgerConsistencyError("未找到已结单的派单轮次，无法计算冻结时间", order_id=order.id)

    start_at = completed.completed_at
    from_fallback = False
    if start_at is None and fallback and completed.accepted_all_at is not None:
        start_at = completed.accepted_all_at
        from_fallback = True
    if start_at is None:
        raise LedgerConsistencyError(
            "结单轮次缺少结单时间，无法计算冻结时间",
            order_id=order.id,
            round_id=completed.id,
        )

    start_at = ensure_utc(start_at)
    days = freeze_days_for(order.product_category, settings)
    return FreezeWindow(
        start_at=start_at,
        unlock_at=start_at + timedelta(days=days),
        days=days,
        from_fallback=from_fallback,
    )
