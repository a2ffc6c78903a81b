from datetime import timedelta

from sqlalchemy import update

from dispatch_ledger.db.models import WalletTransaction
from dispatch_ledger.domain.unlocks import UnlockSweeper
from dispatch_ledger.domain.wallets import WalletService
from dispatch_ledger.infrastructure.database.session import session_scope

from .factories import T0


async def _seed_earnings(session_factory, unlock_days):
    async with session_scope(session_factory) as session:
        wallet = WalletService.with_session(session)
        for index, days in enumerate(unlock_days):
            await wallet.sync_earning(
                user_id="w1",
                amount_cents=1000 * (index + 1),
                unlock_at=T0 + timedelta(days=days),
                source_id=f"s{index}",
                order_id="o1",
            )


async def _account(session_factory):
    async with session_scope(session_factory) as session:
        wallet = WalletService.with_session(session)
        account = await wallet.get_account("w1")
        reconciliation = await wallet.reconcile("w1")
    return account, reconciliation


async def test_sweeper_releases_due_holds_in_batches(session_factory, sweeper_settings):
    await _seed_earnings(session_factory, [1, 2, 3, 30])
    sweeper = UnlockSweeper(session_factory=session_factory, settings=sweeper_settings)

    result = await sweeper.release_due_holds(now=T0 + timedelta(days=7))

    assert result.released == 3
    assert result.failed == 0
    assert result.batches == 2
    account, reconciliation = await _account(session_factory)
    assert (account.available_cents, account.frozen_cents) == (6000, 4000)
    assert reconciliation.is_balanced

    again = await sweeper.release_due_holds(now=T0 + timedelta(days=7))
    assert again.released == 0
    assert again.batches == 1


async def test_a_bad_hold_does_not_block_the_rest(session_factory, sweeper_settings):
    await _seed_earnings(session_factory, [1, 2, 3])
    async with session_scope(session_factory) as session:
        await session.execute(
            update(WalletTransaction).where(WalletTransaction.source_id == "s1").values(amount_cents=1)
        )

    sweeper = UnlockSweeper(session_factory=session_factory, settings=sweeper_settings)
    result = await sweeper.release_due_holds(now=T0 + timedelta(days=7))

    assert result.released == 2
    assert result.failed == 1
    assert len(result.failed_hold_ids) == 1

    async with session_scope(session_factory) as session:
        holds = await WalletService.with_session(session).list_holds("w1", "FROZEN")
    assert [h.id for h in holds] == result.failed_hold_ids


async def test_max_batches_bounds_one_sweep(session_factory, sweeper_settings):
    await _seed_earnings(session_factory, [1, 1, 1, 1, 1])
    sweeper = UnlockSweeper(session_factory=session_factory, settings=sweeper_settings)

    result = await sweeper.release_due_holds(max_batches=1, now=T0 + timedelta(days=2))

    assert result.batches == 1
    assert result.released == 2
