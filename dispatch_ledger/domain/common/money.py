"""Money helpers. All stored amounts are integer cents."""

from __future__ import annotations

from decimal import ROUND_DOWN, ROUND_FLOOR, Decimal
from typing import Any

# 结算金额保留 1 位小数（角），即 10 分
UNIT_CENTS = 10
_HALF = Decimal("0.5")


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round_mix1(cents: Any) -> int:
    """Round an amount in cents to a whole 0.1 unit.

    Positive amounts are truncated so a worker is never over-paid, negative
    amounts are rounded half up (toward positive infinity on ties).
    """
    value = to_decimal(cents)
    if value == 0:
        return 0
    units = value / UNIT_CENTS
    if value > 0:
        rounded = units.to_integral_value(rounding=ROUND_DOWN)
    else:
        rounded = (units + _HALF).to_integral_value(rounding=ROUND_FLOOR)
    return int(rounded) * UNIT_CENTS


def format_cents(cents: int | None) -> str:
    if cents is None:
        return "-"
    sign = "-" if cents < 0 else ""
    return f"{sign}¥{abs(cents) // 100}.{abs(cents) % 100:02d}"
