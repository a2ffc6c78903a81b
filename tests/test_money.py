from decimal import Decimal

import pytest

from dispatch_ledger.domain.common import format_cents, round_mix1


@pytest.mark.parametrize(
    ("cents", "expected"),
    [
        (0, 0),
        (5, 0),
        (1234, 1230),
        (1239, 1230),
        (Decimal("99.99"), 90),
        (-1234, -1230),
        (-1235, -1230),
        (-1236, -1240),
    ],
)
def test_round_mix1(cents, expected):
    assert round_mix1(cents) == expected


def test_round_mix1_accepts_float_without_binary_noise():
    assert round_mix1(0.1 * 3 * 1000) == 300


def test_format_cents():
    assert format_cents(12345) == "¥123.45"
    assert format_cents(-5) == "-¥0.05"
    assert format_cents(None) == "-"
