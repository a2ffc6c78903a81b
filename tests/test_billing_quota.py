import pytest

from dispatch_ledger.domain.billing import compute_settlements
from dispatch_ledger.domain.billing.quota import QuotaLedger
from dispatch_ledger.domain.common import SettlementValidationError

from .factories import archived_round, completed_round, order, participant


def _rows(rows):
    return {(row.round_id, row.worker_id, row.settlement_type): row.calculated_cents for row in rows}


def test_ledger_repays_debt_before_ordinary_payout():
    ledger = QuotaLedger(pool_cents=1000)
    ledger.charge_penalty(300)
    assert ledger.pool_cents == 1300
    assert ledger.consume(500) == (300, 200)
    assert ledger.debt_cents == 0
    assert ledger.repaid_cents == 300
    assert ledger.consume(5000) == (0, 800)
    assert ledger.pool_cents == 0


def test_penalty_is_carried_and_repaid_by_later_work():
    snapshot = order(
        "QUOTA",
        guaranteed_quota=100,
        rounds=[
            archived_round(1, [participant("w1", contribution=30), participant("w2", contribution=-10)], end_minute=60),
            archived_round(2, [participant("w1", contribution=20)], end_minute=120),
            completed_round(3, [participant("w3")], end_minute=180),
        ],
    )
    rows = compute_settlements(snapshot)

    assert _rows(rows) == {
        ("r1", "w1", "BASE"): 30000,
        ("r1", "w2", "PENALTY"): -10000,
        ("r2", "w1", "BASE"): 10000,
        ("r2", "w1", "CARRY_COMPENSATION"): 10000,
        ("r3", "w3", "BASE"): 60000,
    }
    assert sum(row.calculated_cents for row in rows) == snapshot.paid_amount_cents


def test_penalties_ignore_commission_but_payouts_do_not():
    snapshot = order(
        "QUOTA",
        guaranteed_quota=100,
        commission_rate="0.1",
        rounds=[
            archived_round(1, [participant("w1", contribution=-10), participant("w2", contribution=10)], end_minute=60),
        ],
    )
    rows = _rows(compute_settlements(snapshot))
    assert rows[("r1", "w1", "PENALTY")] == -10000
    assert rows[("r1", "w2", "CARRY_COMPENSATION")] == 9000
    assert rows[("r1", "w2", "BASE")] == 0


def test_missing_contribution_counts_as_zero():
    snapshot = order(
        "QUOTA",
        guaranteed_quota=100,
        rounds=[archived_round(1, [participant("w1")], end_minute=60)],
    )
    assert _rows(compute_settlements(snapshot)) == {("r1", "w1", "BASE"): 0}


@pytest.mark.parametrize(
    "fields",
    [
        {},
        {"guaranteed_quota": 0},
        {"guaranteed_quota": 100, "paid_amount_cents": 0},
    ],
)
def test_quota_orders_require_quota_and_amount(fields):
    snapshot = order("QUOTA", rounds=[completed_round(1, [participant("w1")], end_minute=60)], **fields)
    with pytest.raises(SettlementValidationError):
        compute_settlements(snapshot)
