"""Commission rate resolution.

Priority: order rate > product rate > worker-tier rate > 0. A rate of exactly
zero counts as set; only ``None`` falls through to the next source. Values
greater than one are percentages.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping

from dispatch_ledger.domain.common import SettlementValidationError, to_decimal
from dispatch_ledger.domain.orders.models import OrderSnapshot

_ONE = Decimal(1)
_ZERO = Decimal(0)
_HUNDRED = Decimal(100)


class RateSource(str, Enum):
    ORDER = "ORDER"
    PRODUCT = "PRODUCT"
    TIER = "TIER"
    DEFAULT = "DEFAULT"


@dataclass(slots=True, frozen=True)
class CommissionResolution:
    commission_rate: Decimal
    multiplier: Decimal
    source: RateSource
    raw: Any


def _normalize(raw: Any) -> Decimal:
    try:
        rate = to_decimal(raw)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise SettlementValidationError(f"抽成比例非法: {raw!r}", rate=str(raw)) from exc
    if not rate.is_finite():
        raise SettlementValidationError(f"抽成比例非法: {raw!r}", rate=str(raw))
    if rate > _ONE:
        rate = rate / _HUNDRED
    return min(_ONE, max(_ZERO, rate))


def resolve_commission(order_rate: Any = None, product_rate: Any = None, tier_rate: Any = None) -> CommissionResolution:
    for source, raw in (
        (RateSource.ORDER, order_rate),
        (RateSource.PRODUCT, product_rate),
        (RateSource.TIER, tier_rate),
    ):
        if raw is not None:
            rate = _normalize(raw)
            return CommissionResolution(rate, _ONE - rate, source, raw)
    return CommissionResolution(_ZERO, _ONE, RateSource.DEFAULT, None)


@dataclass(slots=True, frozen=True)
class CommissionTable:
    """Per-worker resolutions frozen at the start of one settlement run."""

    resolutions: Mapping[str, CommissionResolution]

    @classmethod
    def from_snapshot(cls, order: OrderSnapshot) -> "CommissionTable":
        resolutions: dict[str, CommissionResolution] = {}
        for round_ in order.rounds:
            for participant in round_.participants:
                worker = participant.worker
                if worker.id in resolutions:
                    continue
                resolutions[worker.id] = resolve_commission(
                    order.commission_rate,
                    order.product_commission_rate,
                    worker.tier_rate,
                )
        return cls(resolutions)

    def multiplier(self, worker_id: str) -> Decimal:
        resolution = self.resolutions.get(worker_id)
        if resolution is None:
            raise SettlementValidationError(f"缺少打手抽成快照: {worker_id}", worker_id=worker_id)
        return resolution.multiplier

    def resolution(self, worker_id: str) -> CommissionResolution:
        return self.resolutions[worker_id]
