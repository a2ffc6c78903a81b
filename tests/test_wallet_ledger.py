from datetime import timedelta

import pytest
from sqlalchemy import select

from dispatch_ledger.db.models import WalletTransaction
from dispatch_ledger.domain.common import LedgerConsistencyError, SettlementConflictError
from dispatch_ledger.domain.wallets import BalanceDelta, SyncAction, WalletService
from dispatch_ledger.infrastructure.database.repositories.wallet_repository import SqlWalletRepository

from .factories import T0

UNLOCK_AT = T0 + timedelta(days=7)


@pytest.fixture
def wallet(session):
    return WalletService.with_session(session)


async def _earn(wallet, amount, *, source_id="s1", user_id="w1", order_id="o1", unlock_at=UNLOCK_AT):
    return await wallet.sync_earning(
        user_id=user_id,
        amount_cents=amount,
        unlock_at=unlock_at,
        source_id=source_id,
        order_id=order_id,
        round_id="o1-r1",
        settlement_id=source_id,
    )


async def _balances(wallet, user_id="w1"):
    account = await wallet.get_account(user_id)
    return account.available_cents, account.frozen_cents


async def test_positive_earning_is_frozen_with_a_hold(wallet):
    result = await _earn(wallet, 5000)

    assert result.action is SyncAction.CREATED
    assert result.delta == BalanceDelta(0, 5000)
    assert result.transaction.frozen_after_cents == 5000
    assert await _balances(wallet) == (0, 5000)

    holds = await wallet.list_holds("w1")
    assert [(h.amount_cents, h.status, h.unlock_at) for h in holds] == [(5000, "FROZEN", UNLOCK_AT)]


async def test_replaying_the_same_earning_is_a_no_op(wallet):
    await _earn(wallet, 5000)
    result = await _earn(wallet, 5000)

    assert result.action is SyncAction.UNCHANGED
    assert result.delta.is_zero
    assert await _balances(wallet) == (0, 5000)
    assert len(await wallet.list_transactions("w1")) == 1


async def test_changed_amount_applies_only_the_difference(wallet):
    await _earn(wallet, 5000)
    result = await _earn(wallet, 7000)

    assert result.action is SyncAction.UPDATED
    assert result.delta == BalanceDelta(0, 2000)
    assert await _balances(wallet) == (0, 7000)
    holds = await wallet.list_holds("w1")
    assert [h.amount_cents for h in holds] == [7000]


async def test_zero_amount_reverses_and_revives(wallet):
    assert (await _earn(wallet, 0)).action is SyncAction.SKIPPED

    await _earn(wallet, 5000)
    reversed_ = await _earn(wallet, 0)
    assert reversed_.action is SyncAction.REVERSED
    assert reversed_.delta == BalanceDelta(0, -5000)
    assert await _balances(wallet) == (0, 0)
    assert [h.status for h in await wallet.list_holds("w1")] == ["CANCELLED"]

    assert (await _earn(wallet, 0)).action is SyncAction.UNCHANGED

    revived = await _earn(wallet, 3000)
    assert revived.action is SyncAction.REVIVED
    assert revived.delta == BalanceDelta(0, 3000)
    assert await _balances(wallet) == (0, 3000)
    assert [(h.amount_cents, h.status) for h in await wallet.list_holds("w1")] == [(3000, "FROZEN")]


async def test_negative_amount_is_an_immediate_debit(wallet):
    result = await _earn(wallet, -2000)

    assert result.action is SyncAction.CREATED
    assert result.transaction.direction == "OUT"
    assert result.transaction.biz_type == "SETTLEMENT_DEBIT"
    assert result.delta == BalanceDelta(-2000, 0)
    assert await _balances(wallet) == (-2000, 0)
    assert await wallet.list_holds("w1") == []


async def test_frozen_earning_can_turn_into_a_debit(wallet):
    await _earn(wallet, 5000)
    result = await _earn(wallet, -2000)

    assert result.action is SyncAction.UPDATED
    assert result.delta == BalanceDelta(-2000, -5000)
    assert await _balances(wallet) == (-2000, 0)
    assert [h.status for h in await wallet.list_holds("w1")] == ["CANCELLED"]


async def test_source_key_owned_by_another_user_is_rejected(wallet):
    await _earn(wallet, 5000)
    with pytest.raises(LedgerConsistencyError):
        await _earn(wallet, 5000, user_id="w2")


async def test_release_moves_frozen_to_available(wallet):
    await _earn(wallet, 5000)
    (hold,) = await wallet.list_holds("w1")

    assert await wallet.release_hold(hold.id, UNLOCK_AT - timedelta(seconds=1)) is False
    assert await wallet.release_hold(hold.id, UNLOCK_AT) is True
    assert await wallet.release_hold(hold.id, UNLOCK_AT) is False

    assert await _balances(wallet) == (5000, 0)
    (hold,) = await wallet.list_holds("w1")
    assert hold.status == "RELEASED"
    assert hold.released_at is not None

    biz_types = sorted(tx.biz_type for tx in await wallet.list_transactions("w1"))
    assert biz_types == ["RELEASE_FROZEN", "SETTLEMENT_EARNING"]
    assert (await wallet.reconcile("w1")).is_balanced


async def test_released_earning_cannot_be_rewritten(wallet):
    await _earn(wallet, 5000)
    (hold,) = await wallet.list_holds("w1")
    await wallet.release_hold(hold.id, UNLOCK_AT)

    assert (await _earn(wallet, 5000)).action is SyncAction.UNCHANGED
    with pytest.raises(LedgerConsistencyError):
        await _earn(wallet, 6000)


async def test_release_rejects_a_hold_that_disagrees_with_its_transaction(wallet, session):
    await _earn(wallet, 5000)
    (hold,) = await wallet.list_holds("w1")
    tx = (await session.execute(select(WalletTransaction))).scalar_one()
    tx.amount_cents = 4000
    await session.flush()

    with pytest.raises(LedgerConsistencyError):
        await wallet.release_hold(hold.id, UNLOCK_AT)


async def test_reconcile_detects_drift(wallet):
    await _earn(wallet, 5000, source_id="s1")
    await _earn(wallet, -1200, source_id="s2")
    assert (await wallet.reconcile("w1")).is_balanced

    await wallet.apply_balance_delta("w1", BalanceDelta(100, 0))
    result = await wallet.reconcile("w1")
    assert not result.is_balanced
    assert result.expected_available_cents == -1200
    assert result.actual_available_cents == -1100


async def test_refund_reverses_frozen_and_released_earnings(wallet):
    await _earn(wallet, 5000, source_id="s1")
    await _earn(wallet, 3000, source_id="s2")
    hold = next(h for h in await wallet.list_holds("w1") if h.amount_cents == 3000)
    await wallet.release_hold(hold.id, UNLOCK_AT)
    assert await _balances(wallet) == (3000, 5000)

    assert await wallet.reverse_order_earnings("o1") == 2
    assert await _balances(wallet) == (0, 0)
    assert (await wallet.reconcile("w1")).is_balanced

    markers = [tx for tx in await wallet.list_transactions("w1") if tx.biz_type == "REFUND_REVERSAL"]
    assert len(markers) == 1
    assert markers[0].direction == "OUT"
    assert markers[0].reversal_of_tx_id is not None

    assert await wallet.reverse_order_earnings("o1") == 0
    assert await _balances(wallet) == (0, 0)


async def test_rollback_inverts_recorded_effects(wallet):
    await _earn(wallet, 5000, source_id="s1")
    await _earn(wallet, -1000, source_id="s2")
    await _earn(wallet, 2000, source_id="s3", user_id="w2")

    deltas = await wallet.rollback_order("o1")

    assert deltas == {"w1": BalanceDelta(1000, -5000), "w2": BalanceDelta(0, -2000)}
    assert await _balances(wallet) == (0, 0)
    assert await _balances(wallet, "w2") == (0, 0)
    assert await wallet.list_order_transactions("o1") == []
    assert await wallet.list_holds("w1") == []


async def test_duplicate_source_key_insert_is_a_conflict(wallet, session):
    await _earn(wallet, 5000)
    repository = SqlWalletRepository(session)

    with pytest.raises(SettlementConflictError):
        await repository.add_transaction(
            user_id="w1",
            direction="IN",
            biz_type="SETTLEMENT_EARNING",
            amount_cents=100,
            status="AVAILABLE",
            source_type="ORDER_SETTLEMENT",
            source_id="s1",
        )

    assert await _balances(wallet) == (0, 5000)
    assert len(await wallet.list_transactions("w1")) == 1
