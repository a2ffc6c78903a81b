"""Settlement ledger writer and the per-round settlement workflow."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Mapping, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dispatch_ledger.core.clock import ensure_utc, utcnow
from dispatch_ledger.core.config import SettlementSettings, get_settings
from dispatch_ledger.db.models import OrderSettlement as OrderSettlementModel
from dispatch_ledger.domain.audit import AuditService
from dispatch_ledger.domain.billing import (
    CandidateRow,
    billable_minutes,
    compute_settlements,
    minutes_to_billable_hours,
    round_started_at,
)
from dispatch_ledger.domain.common import (
    SettlementConflictError,
    SettlementNotFoundError,
    format_cents,
)
from dispatch_ledger.domain.freeze import compute_freeze_window
from dispatch_ledger.domain.orders import BillingPolicy, OrderSnapshot, OrderSnapshotRepository, RoundStatus
from dispatch_ledger.domain.wallets import SyncResult, WalletService
from dispatch_ledger.infrastructure.database.repositories.order_repository import SqlOrderRepository
from dispatch_ledger.infrastructure.database.repositories.settlement_repository import SqlSettlementRepository
from dispatch_ledger.infrastructure.database.session import get_session_factory, session_scope

from .models import PaymentStatus, SettlementOutcome, SettlementRecord, SettleResult, new_batch_id
from .repository import SettlementRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SettlementLedgerService:
    repository: SettlementRepository
    orders: OrderSnapshotRepository
    audit: AuditService

    @classmethod
    def with_session(cls, session: AsyncSession) -> "SettlementLedgerService":
        return cls(
            SqlSettlementRepository(session),
            SqlOrderRepository(session),
            AuditService.with_session(session),
        )

    async def list_for_order(self, order_id: str) -> list[SettlementRecord]:
        rows = await self.repository.list_for_order(order_id)
        return [self._to_record(row) for row in rows]

    async def upsert_rows(
        self,
        rows: Iterable[CandidateRow],
        batch_id: str,
        *,
        override_adjustments: bool = False,
        settled_at: datetime | None = None,
    ) -> list[SettlementRecord]:
        """Insert or update rows keyed by (round, worker, type).

        Manual adjustments survive unless ``override_adjustments`` is set;
        ``final_cents`` is always ``calculated_cents + adjustment_cents``.
        """
        rows = list(rows)
        settled_at = settled_at or utcnow()
        existing: dict[tuple[str, str, str], OrderSettlementModel] = {}
        for order_id in {row.order_id for row in rows}:
            for model in await self.repository.list_for_order(order_id):
                existing[(model.round_id, model.worker_id, model.settlement_type)] = model

        records = []
        for row in rows:
            model = existing.get(row.key)
            if model is None:
                model = await self.repository.insert_row(
                    order_id=row.order_id,
                    round_id=row.round_id,
                    worker_id=row.worker_id,
                    settlement_type=row.settlement_type,
                    batch_id=batch_id,
                    calculated_cents=row.calculated_cents,
                    adjustment_cents=0,
                    final_cents=row.calculated_cents,
                    payment_status=PaymentStatus.UNPAID.value,
                    settled_at=settled_at,
                )
            else:
                adjustment = 0 if override_adjustments else (model.adjustment_cents or 0)
                model = await self.repository.update_row(
                    model.id,
                    batch_id=batch_id,
                    calculated_cents=row.calculated_cents,
                    adjustment_cents=adjustment,
                    final_cents=row.calculated_cents + adjustment,
                    settled_at=settled_at,
                )
            records.append(self._to_record(model))
        return records

    async def delete_rows(self, settlement_ids: Sequence[str]) -> int:
        return await self.repository.delete_rows(settlement_ids)

    async def mark_paid(self, settlement_ids: Sequence[str], *, operator_id: str | None = None) -> list[SettlementRecord]:
        """Flip unpaid rows to paid. Rows already paid are left untouched."""
        paid_at = utcnow()
        rows = await self.repository.mark_paid(settlement_ids, paid_at)
        records = [self._to_record(row) for row in rows]
        if records:
            await self.audit.record(
                "MARK_PAID",
                target_type="SETTLEMENT",
                target_id=records[0].order_id,
                operator_id=operator_id,
                new_data={"settlement_ids": [r.id for r in records], "paid_at": paid_at.isoformat()},
            )
        return records

    # ------------------------------------------------------------------
    # round lock
    # ------------------------------------------------------------------
    async def lock_for_settlement(self, round_id: str) -> None:
        locked = await self.repository.transition_round(
            round_id,
            RoundStatus.ACCEPTED.value,
            RoundStatus.SETTLING.value,
        )
        if locked:
            logger.info("Round %s locked for settlement", round_id)
            return
        if not await self.repository.round_exists(round_id):
            raise SettlementNotFoundError(f"派单轮次不存在: {round_id}", round_id=round_id)
        logger.warning("Round %s is not in ACCEPTED state, settlement rejected", round_id)
        raise SettlementConflictError("该轮次正在结算或已结算，请刷新后重试", round_id=round_id)

    async def release_settlement_lock(self, round_id: str) -> bool:
        released = await self.repository.transition_round(
            round_id,
            RoundStatus.SETTLING.value,
            RoundStatus.ACCEPTED.value,
        )
        if released:
            logger.info("Round %s settlement lock released", round_id)
        return bool(released)

    async def finish_settlement(
        self,
        round_id: str,
        outcome: SettlementOutcome,
        at: datetime | None = None,
        allocations: Mapping[str, int] | None = None,
    ) -> OrderSnapshot:
        """Move a locked round to its terminal state and return the refreshed order snapshot.

        For allocated orders the operator income of the round is stored with it,
        so later recomputes do not depend on the table being supplied again.
        """
        order_id = await self.orders.get_order_id_for_round(round_id)
        if order_id is None:
            raise SettlementNotFoundError(f"派单轮次不存在: {round_id}", round_id=round_id)
        order = await self.orders.load_snapshot(order_id)
        round_ = order.find_round(round_id)

        at = ensure_utc(at) if at else utcnow()
        fields: dict[str, object] = {}
        if outcome is SettlementOutcome.ARCHIVE:
            fields["archived_at"] = at
        else:
            fields["completed_at"] = at
        if order.billing_policy == BillingPolicy.DURATION.value and round_.billable_hours is None:
            minutes = billable_minutes(round_started_at(round_), at, round_.deduct_minutes)
            fields["billable_minutes"] = minutes
            fields["billable_hours"] = minutes_to_billable_hours(minutes)
        if order.billing_policy == BillingPolicy.ALLOCATED.value and allocations and round_id in allocations:
            fields["allocated_income_cents"] = int(allocations[round_id])

        moved = await self.repository.transition_round(
            round_id,
            RoundStatus.SETTLING.value,
            outcome.round_status.value,
            **fields,
        )
        if not moved:
            raise SettlementConflictError("结算锁已失效，请重新提交", round_id=round_id)
        if outcome is SettlementOutcome.COMPLETE:
            await self.repository.set_order_status(order_id, "COMPLETED")

        refreshed = await self.orders.load_snapshot(order_id)
        if refreshed is None:
            raise SettlementNotFoundError(f"订单不存在: {order_id}", order_id=order_id)
        return refreshed

    async def store_round_incomes(self, order: OrderSnapshot, allocations: Mapping[str, int] | None) -> None:
        """Persist operator income for the settled rounds named in ``allocations``."""
        if order.billing_policy != BillingPolicy.ALLOCATED.value or not allocations:
            return
        for round_ in order.settled_rounds():
            if round_.id in allocations:
                await self.repository.update_round(round_.id, allocated_income_cents=int(allocations[round_.id]))

    @staticmethod
    def _to_record(model: OrderSettlementModel) -> SettlementRecord:
        return SettlementRecord(
            id=model.id,
            order_id=model.order_id,
            round_id=model.round_id,
            worker_id=model.worker_id,
            settlement_type=model.settlement_type,
            batch_id=model.batch_id,
            calculated_cents=model.calculated_cents,
            adjustment_cents=model.adjustment_cents,
            final_cents=model.final_cents,
            payment_status=model.payment_status,
            settled_at=ensure_utc(model.settled_at),
            paid_at=ensure_utc(model.paid_at),
        )


async def sync_order_wallet(
    wallet: WalletService,
    order: OrderSnapshot,
    records: Iterable[SettlementRecord],
    settings: SettlementSettings,
) -> list[SyncResult]:
    """Push every settlement row of a completed order into the wallet ledger."""
    window = compute_freeze_window(order, settings)
    results = []
    for record in records:
        result = await wallet.sync_earning(
            user_id=record.worker_id,
            amount_cents=record.final_cents,
            unlock_at=window.unlock_at,
            source_id=record.id,
            order_id=record.order_id,
            round_id=record.round_id,
            settlement_id=record.id,
        )
        results.append(result)
    return results


@dataclass(slots=True)
class SettlementService:
    """Runs one round settlement across its own short transactions."""

    session_factory: async_sessionmaker[AsyncSession] = field(default_factory=get_session_factory)
    settings: SettlementSettings = field(default_factory=lambda: get_settings().settlement)

    async def settle_round(
        self,
        round_id: str,
        outcome: SettlementOutcome | str,
        *,
        at: datetime | None = None,
        allocations: Mapping[str, int] | None = None,
        operator_id: str | None = None,
    ) -> SettleResult:
        outcome = SettlementOutcome(outcome)

        async with session_scope(self.session_factory) as session:
            await SettlementLedgerService.with_session(session).lock_for_settlement(round_id)

        try:
            async with session_scope(self.session_factory) as session:
                result = await self._settle_locked(session, round_id, outcome, at, allocations, operator_id)
        except Exception:
            logger.warning("Settlement of round %s failed, releasing lock", round_id, exc_info=True)
            async with session_scope(self.session_factory) as session:
                await SettlementLedgerService.with_session(session).release_settlement_lock(round_id)
            raise

        logger.info(
            "Round %s settled as %s: %s rows totalling %s, batch %s",
            round_id,
            outcome.value,
            len(result.records),
            format_cents(sum(record.final_cents for record in result.records)),
            result.batch_id,
        )
        return result

    async def _settle_locked(
        self,
        session: AsyncSession,
        round_id: str,
        outcome: SettlementOutcome,
        at: Optional[datetime],
        allocations: Mapping[str, int] | None,
        operator_id: str | None,
    ) -> SettleResult:
        ledger = SettlementLedgerService.with_session(session)
        order = await ledger.finish_settlement(round_id, outcome, at, allocations)

        candidates = [row for row in compute_settlements(order, allocations, self.settings) if row.round_id == round_id]
        batch_id = new_batch_id()
        records = await ledger.upsert_rows(candidates, batch_id)
        result = SettleResult(
            order_id=order.id,
            round_id=round_id,
            outcome=outcome,
            batch_id=batch_id,
            records=records,
        )

        if outcome is SettlementOutcome.COMPLETE:
            wallet = WalletService.with_session(session)
            all_records = await ledger.list_for_order(order.id)
            result.wallet_results = await sync_order_wallet(wallet, order, all_records, self.settings)
            result.unlock_at = compute_freeze_window(order, self.settings).unlock_at

        await ledger.audit.record(
            "SETTLE_ROUND",
            target_type="ROUND",
            target_id=round_id,
            operator_id=operator_id,
            new_data={
                "order_id": order.id,
                "outcome": outcome.value,
                "batch_id": batch_id,
                "rows": [
                    {"worker_id": r.worker_id, "type": r.settlement_type, "final_cents": r.final_cents}
                    for r in records
                ],
            },
        )
        return result
