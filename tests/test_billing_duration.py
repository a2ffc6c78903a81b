from decimal import Decimal

import pytest

from dispatch_ledger.domain.billing import (
    billable_minutes,
    compute_settlements,
    minutes_to_billable_hours,
    resolve_unit_price,
)
from dispatch_ledger.domain.common import SettlementValidationError

from .factories import archived_round, completed_round, minutes, order, participant


def _by_worker(rows):
    return {row.worker_id: row.calculated_cents for row in rows}


@pytest.mark.parametrize(
    ("elapsed", "hours"),
    [
        (0, "0"),
        (17, "0"),
        (18, "0.5"),
        (37, "0.5"),
        (45, "0.5"),
        (46, "1"),
        (50, "1"),
        (150, "2.5"),
        (200, "3.5"),
        (197, "3"),
    ],
)
def test_minutes_to_billable_hours(elapsed, hours):
    assert minutes_to_billable_hours(elapsed) == Decimal(hours)


def test_billable_minutes_applies_deduction_and_floors_at_zero():
    assert billable_minutes(minutes(0), minutes(157), 7) == 150
    assert billable_minutes(minutes(0), minutes(5), 30) == 0
    assert billable_minutes(None, minutes(5)) == 0


def test_unit_price_is_mean_price_capped_by_product_price():
    assert resolve_unit_price(order(ordered_hours=10)) == 10000
    assert resolve_unit_price(order(ordered_hours=10, product_price_cents=8000)) == 8000
    assert resolve_unit_price(order(ordered_hours=3)) == 33330
    assert resolve_unit_price(order(product_price_cents=9000)) == 9000
    with pytest.raises(SettlementValidationError):
        resolve_unit_price(order())


def test_archived_round_consumes_hours_and_completed_round_absorbs_rest():
    snapshot = order(
        ordered_hours=10,
        rounds=[
            archived_round(1, [participant("w1"), participant("w2")], end_minute=150),
            completed_round(2, [participant("w3", accepted_at=minutes(200))], end_minute=210),
        ],
    )
    rows = compute_settlements(snapshot)

    assert _by_worker(rows) == {"w1": 12500, "w2": 12500, "w3": 75000}
    assert sum(row.calculated_cents for row in rows) == snapshot.paid_amount_cents
    assert {row.settlement_type for row in rows} == {"BASE"}


def test_bucketed_rounds_sum_to_paid_amount():
    snapshot = order(
        ordered_hours=3,
        rounds=[
            archived_round(1, [participant("w1")], end_minute=37),
            archived_round(2, [participant("w2", accepted_at=minutes(40))], end_minute=90),
            completed_round(3, [participant("w3", accepted_at=minutes(100))], end_minute=101),
        ],
    )
    rows = compute_settlements(snapshot)

    assert _by_worker(rows) == {"w1": 16660, "w2": 33330, "w3": 50010}
    assert sum(row.calculated_cents for row in rows) == 100000


def test_archived_rounds_never_exceed_the_pool():
    snapshot = order(
        paid_amount_cents=10000,
        ordered_hours=1,
        rounds=[
            archived_round(1, [participant("w1")], end_minute=180),
            completed_round(2, [participant("w2")], end_minute=200),
        ],
    )
    assert _by_worker(compute_settlements(snapshot)) == {"w1": 10000, "w2": 0}


def test_stored_billable_hours_win_over_timestamps():
    snapshot = order(
        ordered_hours=10,
        rounds=[
            archived_round(1, [participant("w1")], end_minute=30, billable_hours=Decimal("4")),
            completed_round(2, [participant("w2")], end_minute=300),
        ],
    )
    assert _by_worker(compute_settlements(snapshot)) == {"w1": 40000, "w2": 60000}


def test_earliest_acceptance_starts_the_clock():
    snapshot = order(
        ordered_hours=10,
        rounds=[
            archived_round(
                1,
                [participant("w1"), participant("w2", accepted_at=minutes(20))],
                end_minute=60,
            ),
            completed_round(2, [participant("w3")], end_minute=90),
        ],
    )
    rows = _by_worker(compute_settlements(snapshot))
    assert rows["w1"] == rows["w2"] == 5000


def test_inactive_and_unaccepted_participants_are_skipped():
    snapshot = order(
        rounds=[
            completed_round(
                1,
                [
                    participant("w1"),
                    participant("w2", is_active=False),
                    participant("w3", accepted_at=None),
                ],
                end_minute=60,
            ),
        ],
        ordered_hours=1,
    )
    assert _by_worker(compute_settlements(snapshot)) == {"w1": 100000}


def test_commission_multiplier_is_applied():
    snapshot = order(
        ordered_hours=1,
        commission_rate="0.2",
        rounds=[completed_round(1, [participant("w1")], end_minute=60)],
    )
    assert _by_worker(compute_settlements(snapshot)) == {"w1": 80000}


def test_round_without_participants_is_rejected():
    snapshot = order(
        ordered_hours=1,
        rounds=[completed_round(1, [participant("w1", accepted_at=None)], end_minute=60)],
    )
    with pytest.raises(SettlementValidationError):
        compute_settlements(snapshot)


def test_gifted_orders_distribute_the_receivable_amount():
    snapshot = order(
        paid_amount_cents=0,
        receivable_amount_cents=5000,
        is_gifted=True,
        ordered_hours=1,
        rounds=[completed_round(1, [participant("w1")], end_minute=60)],
    )
    assert _by_worker(compute_settlements(snapshot)) == {"w1": 5000}


def test_unknown_policy_is_rejected():
    with pytest.raises(SettlementValidationError):
        compute_settlements(order("HOURLY"))


def test_per_head_share_is_rounded_before_commission():
    snapshot = order(
        paid_amount_cents=10000,
        ordered_hours=1,
        commission_rate="0.1",
        rounds=[completed_round(1, [participant("w1"), participant("w2"), participant("w3")], end_minute=60)],
    )
    # 3333.3 分先取整为 3330，再乘 0.9
    assert _by_worker(compute_settlements(snapshot)) == {"w1": 2990, "w2": 2990, "w3": 2990}
