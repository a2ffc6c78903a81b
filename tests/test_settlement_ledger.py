from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from dispatch_ledger.db.models import DispatchRound, Order, OrderSettlement
from dispatch_ledger.domain.audit import AuditService
from dispatch_ledger.domain.billing import CandidateRow
from dispatch_ledger.domain.common import (
    SettlementConflictError,
    SettlementNotFoundError,
    SettlementValidationError,
)
from dispatch_ledger.domain.settlements import SettlementLedgerService, SettlementOutcome, SettlementService
from dispatch_ledger.domain.wallets import WalletService
from dispatch_ledger.infrastructure.database.session import session_scope

from .factories import minutes


def _row(worker_id: str, cents: int, settlement_type: str = "BASE") -> CandidateRow:
    return CandidateRow(
        order_id="o1",
        round_id="o1-r1",
        round_no=1,
        worker_id=worker_id,
        settlement_type=settlement_type,
        calculated_cents=cents,
    )


@pytest.fixture
async def duration_order(seeder):
    for name in ("w1", "w2", "w3"):
        await seeder.worker(name)
    await seeder.order("o1", ordered_hours=Decimal("10"))
    await seeder.round("o1", 1, ["w1", "w2"])
    await seeder.round("o1", 2, ["w3"], accepted_at=minutes(200), status="WAIT_ACCEPT")
    return "o1"


async def test_upsert_preserves_manual_adjustments(duration_order, session):
    ledger = SettlementLedgerService.with_session(session)
    (record,) = await ledger.upsert_rows([_row("w1", 5000)], "B1")
    assert (record.calculated_cents, record.adjustment_cents, record.final_cents) == (5000, 0, 5000)

    model = await session.get(OrderSettlement, record.id)
    model.adjustment_cents = 300
    model.final_cents = 5300
    await session.flush()

    (record,) = await ledger.upsert_rows([_row("w1", 6000)], "B2")
    assert (record.calculated_cents, record.adjustment_cents, record.final_cents) == (6000, 300, 6300)
    assert record.batch_id == "B2"

    (record,) = await ledger.upsert_rows([_row("w1", 6000)], "B3", override_adjustments=True)
    assert (record.adjustment_cents, record.final_cents) == (0, 6000)
    assert len(await ledger.list_for_order("o1")) == 1


async def test_mark_paid_is_one_way_and_audited(duration_order, session):
    ledger = SettlementLedgerService.with_session(session)
    records = await ledger.upsert_rows([_row("w1", 5000), _row("w2", 5000)], "B1")
    ids = [record.id for record in records]

    paid = await ledger.mark_paid(ids, operator_id="admin")
    assert {record.payment_status for record in paid} == {"PAID"}
    assert await ledger.mark_paid(ids) == []

    entries = await AuditService.with_session(session).list_for_target("SETTLEMENT", "o1")
    assert [entry.action for entry in entries] == ["MARK_PAID"]
    assert sorted(entries[0].new_data["settlement_ids"]) == sorted(ids)


async def test_round_lock_is_exclusive(duration_order, session):
    ledger = SettlementLedgerService.with_session(session)
    await ledger.lock_for_settlement("o1-r1")

    with pytest.raises(SettlementConflictError):
        await ledger.lock_for_settlement("o1-r1")
    with pytest.raises(SettlementNotFoundError):
        await ledger.lock_for_settlement("missing")

    assert await ledger.release_settlement_lock("o1-r1") is True
    assert await ledger.release_settlement_lock("o1-r1") is False


async def test_settle_round_archive_then_complete(duration_order, seeder, session_factory, settlement_settings):
    service = SettlementService(session_factory=session_factory, settings=settlement_settings)

    archived = await service.settle_round("o1-r1", SettlementOutcome.ARCHIVE, at=minutes(150), operator_id="admin")
    assert archived.unlock_at is None
    assert {r.worker_id: r.final_cents for r in archived.records} == {"w1": 12500, "w2": 12500}
    assert archived.wallet_results == []

    await seeder.update_round("o1-r2", status="ACCEPTED")
    completed = await service.settle_round("o1-r2", "COMPLETE", at=minutes(260))
    assert {r.worker_id: r.final_cents for r in completed.records} == {"w3": 75000}
    assert completed.unlock_at == minutes(260) + timedelta(days=7)
    assert len(completed.wallet_results) == 3

    async with session_scope(session_factory) as session:
        round_1 = await session.get(DispatchRound, "o1-r1")
        assert round_1.status == "ARCHIVED"
        assert round_1.billable_minutes == 150
        assert Decimal(round_1.billable_hours) == Decimal("2.5")
        order = await session.get(Order, "o1")
        assert order.status == "COMPLETED"

        wallet = WalletService.with_session(session)
        for user_id, frozen in (("w1", 12500), ("w2", 12500), ("w3", 75000)):
            account = await wallet.get_account(user_id)
            assert (account.available_cents, account.frozen_cents) == (0, frozen)
            assert (await wallet.reconcile(user_id)).is_balanced

        entries = await AuditService.with_session(session).list_for_target("ROUND", "o1-r2")
        assert [entry.action for entry in entries] == ["SETTLE_ROUND"]


async def test_settling_twice_is_a_conflict(duration_order, session_factory, settlement_settings):
    service = SettlementService(session_factory=session_factory, settings=settlement_settings)
    await service.settle_round("o1-r1", "ARCHIVE", at=minutes(150))

    with pytest.raises(SettlementConflictError):
        await service.settle_round("o1-r1", "ARCHIVE", at=minutes(150))


async def test_failed_settlement_releases_the_lock(seeder, session_factory, settlement_settings):
    await seeder.worker("w1")
    await seeder.order("o2", billing_policy="QUOTA")
    await seeder.round("o2", 1, ["w1"], contributions={"w1": 5})

    service = SettlementService(session_factory=session_factory, settings=settlement_settings)
    with pytest.raises(SettlementValidationError):
        await service.settle_round("o2-r1", "ARCHIVE", at=minutes(60))

    async with session_scope(session_factory) as session:
        round_ = await session.get(DispatchRound, "o2-r1")
        assert round_.status == "ACCEPTED"
        assert round_.archived_at is None
        rows = (await session.execute(select(OrderSettlement))).scalars().all()
        assert rows == []

