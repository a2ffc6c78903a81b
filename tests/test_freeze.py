from datetime import timedelta

import pytest

from dispatch_ledger.core.config import SettlementSettings
from dispatch_ledger.domain.common import LedgerConsistencyError
from dispatch_ledger.domain.freeze import compute_freeze_window
from dispatch_ledger.domain.orders import RoundSnapshot

from .factories import T0, archived_round, completed_round, minutes, order, participant


def test_regular_orders_freeze_for_seven_days():
    snapshot = order(rounds=[completed_round(1, [participant("w1")], end_minute=90)])
    window = compute_freeze_window(snapshot, SettlementSettings())
    assert window.days == 7
    assert window.start_at == minutes(90)
    assert window.unlock_at == minutes(90) + timedelta(days=7)
    assert not window.from_fallback


def test_promotional_orders_freeze_for_three_days():
    snapshot = order(
        product_category="EXPERIENCE",
        rounds=[completed_round(1, [participant("w1")], end_minute=90)],
    )
    assert compute_freeze_window(snapshot, SettlementSettings()).days == 3


def test_missing_completed_round_is_a_consistency_error():
    snapshot = order(rounds=[archived_round(1, [participant("w1")], end_minute=60)])
    with pytest.raises(LedgerConsistencyError):
        compute_freeze_window(snapshot, SettlementSettings())


def test_acceptance_fallback_is_opt_in():
    round_ = RoundSnapshot(
        id="r1",
        round_no=1,
        status="COMPLETED",
        participants=(participant("w1"),),
        accepted_all_at=T0,
    )
    snapshot = order(rounds=[round_])

    with pytest.raises(LedgerConsistencyError):
        compute_freeze_window(snapshot, SettlementSettings())

    window = compute_freeze_window(snapshot, SettlementSettings(), allow_acceptance_fallback=True)
    assert window.from_fallback
    assert window.unlock_at == T0 + timedelta(days=7)
