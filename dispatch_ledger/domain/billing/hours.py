"""Billable-duration rules for duration-based orders."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from dispatch_ledger.core.clock import ensure_utc

_HALF_HOUR = Decimal("0.5")


def billable_minutes(
    accepted_at: Optional[datetime],
    end_at: Optional[datetime],
    deduct_minutes: int | None = 0,
) -> int:
    if accepted_at is None or end_at is None:
        return 0
    elapsed = ensure_utc(end_at) - ensure_utc(accepted_at)
    raw_minutes = int(elapsed.total_seconds() // 60)
    return max(0, raw_minutes - (deduct_minutes or 0))


def minutes_to_billable_hours(minutes: int) -> Decimal:
    """Whole hours plus a bucket for the remainder: <18 → 0, 18-45 → 0.5, >45 → 1."""
    hours, rem = divmod(max(0, minutes), 60)
    if rem < 18:
        extra = Decimal(0)
    elif rem <= 45:
        extra = _HALF_HOUR
    else:
        extra = Decimal(1)
    return Decimal(hours) + extra
