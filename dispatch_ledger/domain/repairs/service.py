"""Settlement repair: recompute an order and rewrite its settlement and wallet state atomically.

Every step runs in the caller's transaction. Wallet rollback deltas are the
inverted signed effects of the transactions already recorded for the order,
never a difference against the live balance, so repeated repairs converge.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dispatch_ledger.core.clock import ensure_utc, utcnow
from dispatch_ledger.core.config import SettlementSettings, get_settings
from dispatch_ledger.domain.audit import AuditService
from dispatch_ledger.domain.billing import compute_settlements
from dispatch_ledger.domain.common import (
    LedgerConsistencyError,
    SettlementConflictError,
    SettlementNotFoundError,
)
from dispatch_ledger.domain.orders import OrderSnapshot, OrderSnapshotRepository
from dispatch_ledger.domain.settlements import SettlementLedgerService, new_batch_id, sync_order_wallet
from dispatch_ledger.domain.wallets import SyncResult, TxStatus, WalletService
from dispatch_ledger.infrastructure.database.repositories.order_repository import SqlOrderRepository
from dispatch_ledger.infrastructure.database.repositories.preview_repository import SqlPreviewRepository

from .models import RepairPreview, RepairResult, fingerprint_rows
from .plan import build_comparison_plan
from .repository import PreviewRepository

logger = logging.getLogger(__name__)


def _row_state(record) -> dict:
    return {
        "id": record.id,
        "round_id": record.round_id,
        "worker_id": record.worker_id,
        "settlement_type": record.settlement_type,
        "calculated_cents": record.calculated_cents,
        "adjustment_cents": record.adjustment_cents,
        "final_cents": record.final_cents,
        "batch_id": record.batch_id,
    }


@dataclass(slots=True)
class RepairService:
    orders: OrderSnapshotRepository
    ledger: SettlementLedgerService
    wallet: WalletService
    previews: PreviewRepository
    audit: AuditService
    settings: SettlementSettings = field(default_factory=lambda: get_settings().settlement)

    @classmethod
    def with_session(cls, session: AsyncSession, settings: SettlementSettings | None = None) -> "RepairService":
        return cls(
            orders=SqlOrderRepository(session),
            ledger=SettlementLedgerService.with_session(session),
            wallet=WalletService.with_session(session),
            previews=SqlPreviewRepository(session),
            audit=AuditService.with_session(session),
            settings=settings or get_settings().settlement,
        )

    async def preview(self, order_id: str, allocations: Mapping[str, int] | None = None) -> RepairPreview:
        """Dry-run recompute; persists an expiring preview record for a later :meth:`apply`."""
        order = await self._load_order(order_id)
        await self._ensure_not_settling(order_id)

        candidates = compute_settlements(order, allocations, self.settings)
        existing = await self.ledger.list_for_order(order_id)
        plan = build_comparison_plan(order, existing, candidates)
        fingerprint = fingerprint_rows(candidates)

        await self.previews.purge_expired(utcnow())
        expires_at = utcnow() + timedelta(seconds=self.settings.preview_ttl_seconds)
        allocations_payload = dict(allocations) if allocations is not None else None
        model = await self.previews.add_preview(
            order_id=order_id,
            fingerprint=fingerprint,
            payload={
                "candidates": [row.to_payload() for row in candidates],
                "allocations": allocations_payload,
            },
            expires_at=expires_at,
        )
        logger.info("Repair preview %s for order %s: %s candidate rows", model.id, order_id, len(candidates))
        return RepairPreview(
            preview_id=model.id,
            order_id=order_id,
            fingerprint=fingerprint,
            expires_at=expires_at,
            candidates=candidates,
            plan=plan,
            allocations=allocations_payload,
        )

    async def apply(
        self,
        order_id: str,
        *,
        preview_id: str | None = None,
        allocations: Mapping[str, int] | None = None,
        operator_id: str | None = None,
        reason: str | None = None,
    ) -> RepairResult:
        order = await self._load_order(order_id)
        await self._ensure_not_settling(order_id)

        expected_fingerprint: Optional[str] = None
        if preview_id is not None:
            expected_fingerprint, stored_allocations = await self._check_preview(order_id, preview_id)
            if allocations is None:
                allocations = stored_allocations

        candidates = compute_settlements(order, allocations, self.settings)
        if expected_fingerprint is not None and fingerprint_rows(candidates) != expected_fingerprint:
            logger.warning("Order %s changed since preview %s", order_id, preview_id)
            raise SettlementConflictError(
                "订单数据在预览后已变化，请重新预览",
                order_id=order_id,
                preview_id=preview_id,
            )

        before = await self.ledger.list_for_order(order_id)
        released_sources = await self.wallet.released_earning_sources(order_id)
        rollback_deltas = await self.wallet.rollback_order(order_id)
        await self.ledger.store_round_incomes(order, allocations)

        batch_id = new_batch_id("REPAIR")
        records = await self.ledger.upsert_rows(candidates, batch_id, override_adjustments=True)
        candidate_keys = {row.key for row in candidates}
        stale_ids = [record.id for record in before if record.key not in candidate_keys]
        await self.ledger.delete_rows(stale_ids)

        wallet_results = []
        if order.completed_round() is not None:
            wallet_results = await sync_order_wallet(self.wallet, order, records, self.settings)
            await self._rerelease(wallet_results, released_sources)

        await self._assert_no_orphans(order_id, {record.id for record in records}, stale_ids)

        before_ids = {record.id for record in before}
        result = RepairResult(
            order_id=order_id,
            batch_id=batch_id,
            rollback_deltas=rollback_deltas,
            records=records,
            deleted_settlement_ids=stale_ids,
            wallet_results=wallet_results,
            created_count=sum(1 for record in records if record.id not in before_ids),
            updated_count=sum(1 for record in records if record.id in before_ids),
        )
        await self.audit.record(
            "REPAIR_SETTLEMENT",
            target_type="ORDER",
            target_id=order_id,
            operator_id=operator_id,
            old_data={"rows": [_row_state(record) for record in before]},
            new_data={
                "batch_id": batch_id,
                "rows": [_row_state(record) for record in records],
                "deleted": stale_ids,
                "rollback_deltas": {
                    user_id: {"available_cents": delta.available_cents, "frozen_cents": delta.frozen_cents}
                    for user_id, delta in rollback_deltas.items()
                },
            },
            remark=reason,
        )
        if preview_id is not None:
            await self.previews.delete_preview(preview_id)

        logger.info(
            "Order %s repaired in batch %s: %s created, %s updated, %s deleted",
            order_id,
            batch_id,
            result.created_count,
            result.updated_count,
            len(stale_ids),
        )
        return result

    async def _rerelease(self, wallet_results: list[SyncResult], released_sources: set[str]) -> None:
        # 修复前已解冻的收益重建后仍为可用，不重新冻结
        now = utcnow()
        for result in wallet_results:
            tx = result.transaction
            if tx is None or tx.source_id not in released_sources or tx.status != TxStatus.FROZEN.value:
                continue
            if await self.wallet.release_earning(tx.id, now):
                logger.info("Earning %s of user %s re-released after repair", tx.id, tx.user_id)

    async def _load_order(self, order_id: str) -> OrderSnapshot:
        order = await self.orders.load_snapshot(order_id)
        if order is None:
            raise SettlementNotFoundError(f"订单不存在: {order_id}", order_id=order_id)
        return order

    async def _ensure_not_settling(self, order_id: str) -> None:
        # 仅为粗粒度检查，并非真正的锁
        if await self.orders.any_round_settling(order_id):
            logger.warning("Order %s has a round being settled, repair rejected", order_id)
            raise SettlementConflictError("订单存在结算中的轮次，请稍后重试", order_id=order_id)

    async def _check_preview(self, order_id: str, preview_id: str) -> tuple[str, Optional[dict[str, int]]]:
        preview = await self.previews.get_preview(preview_id)
        if preview is None or preview.order_id != order_id:
            raise SettlementNotFoundError("预览记录不存在，请重新预览", order_id=order_id, preview_id=preview_id)
        if ensure_utc(preview.expires_at) <= utcnow():
            raise SettlementConflictError("预览已过期，请重新预览", order_id=order_id, preview_id=preview_id)
        payload = json.loads(preview.payload)
        allocations = payload.get("allocations")
        if allocations is not None:
            allocations = {key: int(value) for key, value in allocations.items()}
        return preview.fingerprint, allocations

    async def _assert_no_orphans(self, order_id: str, settlement_ids: set[str], removed_ids: list[str]) -> None:
        orphans = await self.wallet.find_live_orphans(order_id, settlement_ids, removed_ids)
        if orphans:
            logger.error(
                "Order %s still has %s live wallet transactions for removed settlements",
                order_id,
                len(orphans),
            )
            raise LedgerConsistencyError(
                "修复后仍存在引用已删除结算记录的钱包流水",
                order_id=order_id,
                tx_ids=[tx.id for tx in orphans],
            )
