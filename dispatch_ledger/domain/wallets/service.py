"""Wallet ledger service.

Balances move only through SQL increments. Each write to a transaction goes
through :meth:`WalletService._transition`, which compares the signed effect
before and after the change and applies exactly the difference, so replaying
the same call is a no-op.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from dispatch_ledger.core.clock import ensure_utc, utcnow
from dispatch_ledger.db.models import (
    WalletAccount as WalletAccountModel,
    WalletHold as WalletHoldModel,
    WalletTransaction as WalletTransactionModel,
)
from dispatch_ledger.domain.common import LedgerConsistencyError
from dispatch_ledger.infrastructure.database.repositories.wallet_repository import SqlWalletRepository

from .models import (
    BalanceDelta,
    BizType,
    HoldStatus,
    Reconciliation,
    SourceType,
    SyncAction,
    SyncResult,
    TxDirection,
    TxStatus,
    WalletAccountSnapshot,
    WalletHoldRecord,
    WalletTransactionRecord,
    signed_effect,
)
from .repository import WalletRepository

logger = logging.getLogger(__name__)

_SETTLEMENT_BIZ_TYPES = (BizType.SETTLEMENT_EARNING.value, BizType.SETTLEMENT_DEBIT.value)


def _effect_of(tx: WalletTransactionModel) -> BalanceDelta:
    return signed_effect(tx.direction, tx.status, tx.biz_type, tx.amount_cents)


@dataclass(slots=True)
class WalletService:
    repository: WalletRepository

    @classmethod
    def with_session(cls, session: AsyncSession) -> "WalletService":
        return cls(SqlWalletRepository(session))

    # ------------------------------------------------------------------
    # accounts
    # ------------------------------------------------------------------
    async def ensure_account(self, user_id: str) -> WalletAccountSnapshot:
        await self.repository.ensure_account(user_id)
        account = await self.repository.get_account(user_id)
        return self._to_account(account)

    async def get_account(self, user_id: str) -> Optional[WalletAccountSnapshot]:
        account = await self.repository.get_account(user_id)
        return self._to_account(account) if account else None

    async def apply_balance_delta(self, user_id: str, delta: BalanceDelta) -> WalletAccountSnapshot:
        await self.repository.ensure_account(user_id)
        account = await self.repository.update_balances(user_id, delta.available_cents, delta.frozen_cents)
        return self._to_account(account)

    # ------------------------------------------------------------------
    # settlement earnings
    # ------------------------------------------------------------------
    async def sync_earning(
        self,
        *,
        user_id: str,
        amount_cents: int,
        unlock_at: datetime,
        source_id: str,
        source_type: str = SourceType.ORDER_SETTLEMENT.value,
        order_id: str | None = None,
        round_id: str | None = None,
        settlement_id: str | None = None,
    ) -> SyncResult:
        """Bring the transaction keyed by (source_type, source_id) in line with ``amount_cents``.

        Positive amounts are frozen inbound earnings with a hold until
        ``unlock_at``. Zero reverses whatever was recorded. Negative amounts are
        immediate outbound debits without a hold.
        """
        amount = int(amount_cents)
        existing = await self.repository.get_transaction_by_source(source_type, source_id)
        if existing is not None and existing.user_id != user_id:
            logger.error(
                "Wallet source key %s/%s belongs to user %s, not %s",
                source_type,
                source_id,
                existing.user_id,
                user_id,
            )
            raise LedgerConsistencyError(
                "幂等键已存在且归属用户不一致",
                source_type=source_type,
                source_id=source_id,
                expected_user_id=existing.user_id,
                user_id=user_id,
            )

        await self.repository.ensure_account(user_id)
        links = {
            key: value
            for key, value in (("order_id", order_id), ("round_id", round_id), ("settlement_id", settlement_id))
            if value is not None
        }
        if amount > 0:
            return await self._sync_positive(existing, user_id, amount, ensure_utc(unlock_at), source_type, source_id, links)
        if amount == 0:
            return await self._sync_zero(existing)
        return await self._sync_negative(existing, user_id, -amount, source_type, source_id, links)

    async def _sync_positive(
        self,
        existing: WalletTransactionModel | None,
        user_id: str,
        amount: int,
        unlock_at: datetime,
        source_type: str,
        source_id: str,
        links: dict[str, Any],
    ) -> SyncResult:
        if existing is None:
            tx = await self.repository.add_transaction(
                user_id=user_id,
                direction=TxDirection.IN.value,
                biz_type=BizType.SETTLEMENT_EARNING.value,
                amount_cents=amount,
                status=TxStatus.FROZEN.value,
                source_type=source_type,
                source_id=source_id,
                **links,
            )
            await self.repository.add_hold(
                user_id=user_id,
                earning_tx_id=tx.id,
                amount_cents=amount,
                unlock_at=unlock_at,
            )
            delta = BalanceDelta(0, amount)
            await self._apply_and_stamp(user_id, delta, tx)
            return SyncResult(SyncAction.CREATED, self._to_transaction(tx), delta)

        if existing.status == TxStatus.REVERSED.value:
            tx, delta = await self._transition(
                existing,
                direction=TxDirection.IN.value,
                biz_type=BizType.SETTLEMENT_EARNING.value,
                status=TxStatus.FROZEN.value,
                amount_cents=amount,
                **links,
            )
            await self._put_hold(tx, amount, unlock_at)
            await self._retire_marker(SourceType.REFUND_REVERSAL.value, tx.id)
            return SyncResult(SyncAction.REVIVED, self._to_transaction(tx), delta)

        if existing.direction == TxDirection.IN.value and existing.status == TxStatus.FROZEN.value:
            hold = await self.repository.get_hold_for_transaction(existing.id)
            same_hold = (
                hold is not None
                and hold.status == HoldStatus.FROZEN.value
                and hold.amount_cents == amount
                and ensure_utc(hold.unlock_at) == unlock_at
            )
            if existing.amount_cents == amount and same_hold:
                return SyncResult(SyncAction.UNCHANGED, self._to_transaction(existing), BalanceDelta())
            tx, delta = await self._transition(existing, amount_cents=amount, **links)
            await self._put_hold(tx, amount, unlock_at)
            return SyncResult(SyncAction.UPDATED, self._to_transaction(tx), delta)

        return self._immutable(existing, TxDirection.IN.value, amount)

    async def _sync_zero(self, existing: WalletTransactionModel | None) -> SyncResult:
        if existing is None:
            return SyncResult(SyncAction.SKIPPED, None, BalanceDelta())
        if existing.status == TxStatus.REVERSED.value:
            return SyncResult(SyncAction.UNCHANGED, self._to_transaction(existing), BalanceDelta())

        tx, delta = await self._transition(existing, status=TxStatus.REVERSED.value)
        await self._cancel_hold(tx.id)
        await self._retire_marker(SourceType.WALLET_HOLD_RELEASE.value, tx.id)
        return SyncResult(SyncAction.REVERSED, self._to_transaction(tx), delta)

    async def _sync_negative(
        self,
        existing: WalletTransactionModel | None,
        user_id: str,
        magnitude: int,
        source_type: str,
        source_id: str,
        links: dict[str, Any],
    ) -> SyncResult:
        debit_fields = {
            "direction": TxDirection.OUT.value,
            "biz_type": BizType.SETTLEMENT_DEBIT.value,
            "status": TxStatus.AVAILABLE.value,
            "amount_cents": magnitude,
        }
        if existing is None:
            tx = await self.repository.add_transaction(
                user_id=user_id,
                source_type=source_type,
                source_id=source_id,
                **debit_fields,
                **links,
            )
            delta = BalanceDelta(-magnitude, 0)
            await self._apply_and_stamp(user_id, delta, tx)
            return SyncResult(SyncAction.CREATED, self._to_transaction(tx), delta)

        if existing.status == TxStatus.REVERSED.value:
            tx, delta = await self._transition(existing, **debit_fields, **links)
            await self._retire_marker(SourceType.REFUND_REVERSAL.value, tx.id)
            return SyncResult(SyncAction.REVIVED, self._to_transaction(tx), delta)

        if existing.direction == TxDirection.IN.value and existing.status == TxStatus.FROZEN.value:
            # 冻结中的收益可以改写为扣款
            await self._cancel_hold(existing.id)
            tx, delta = await self._transition(existing, **debit_fields, **links)
            return SyncResult(SyncAction.UPDATED, self._to_transaction(tx), delta)

        return self._immutable(existing, TxDirection.OUT.value, magnitude)

    def _immutable(self, existing: WalletTransactionModel, direction: str, amount: int) -> SyncResult:
        if existing.direction == direction and existing.amount_cents == amount:
            return SyncResult(SyncAction.UNCHANGED, self._to_transaction(existing), BalanceDelta())
        logger.error(
            "Refusing to rewrite settled wallet tx %s (%s %s %s -> %s %s)",
            existing.id,
            existing.status,
            existing.direction,
            existing.amount_cents,
            direction,
            amount,
        )
        raise LedgerConsistencyError(
            "钱包流水已解冻或已扣款，金额不可再修改",
            tx_id=existing.id,
            status=existing.status,
            recorded_direction=existing.direction,
            recorded_amount_cents=existing.amount_cents,
            direction=direction,
            amount_cents=amount,
        )

    # ------------------------------------------------------------------
    # hold release (used by the unlock sweeper)
    # ------------------------------------------------------------------
    async def release_hold(self, hold_id: str, now: datetime | None = None) -> bool:
        """Move one due hold from frozen to available. Returns ``False`` when nothing was due."""
        now = now or utcnow()
        hold = await self.repository.get_hold(hold_id)
        if hold is None or hold.status != HoldStatus.FROZEN.value:
            return False
        if ensure_utc(hold.unlock_at) > now:
            return False

        tx = await self.repository.get_transaction(hold.earning_tx_id)
        if tx is None or tx.status != TxStatus.FROZEN.value:
            raise LedgerConsistencyError(
                "冻结单对应的收益流水不是冻结状态",
                hold_id=hold.id,
                tx_id=hold.earning_tx_id,
                tx_status=None if tx is None else tx.status,
            )
        if tx.amount_cents != hold.amount_cents:
            raise LedgerConsistencyError(
                "冻结单金额与收益流水金额不一致",
                hold_id=hold.id,
                tx_id=tx.id,
                hold_amount_cents=hold.amount_cents,
                tx_amount_cents=tx.amount_cents,
            )

        marker = await self._put_marker(
            tx,
            source_type=SourceType.WALLET_HOLD_RELEASE.value,
            biz_type=BizType.RELEASE_FROZEN.value,
            direction=TxDirection.IN.value,
        )
        tx, _ = await self._transition(tx, status=TxStatus.AVAILABLE.value)
        await self.repository.update_hold(hold.id, status=HoldStatus.RELEASED.value, released_at=now)
        await self.repository.update_transaction(
            marker.id,
            available_after_cents=tx.available_after_cents,
            frozen_after_cents=tx.frozen_after_cents,
        )
        return True

    async def release_earning(self, tx_id: str, now: datetime | None = None) -> bool:
        hold = await self.repository.get_hold_for_transaction(tx_id)
        if hold is None:
            return False
        return await self.release_hold(hold.id, now)

    # ------------------------------------------------------------------
    # refunds
    # ------------------------------------------------------------------
    async def reverse_order_earnings(self, order_id: str) -> int:
        """Reverse every live settlement transaction of a refunded order. Idempotent."""
        reversed_count = 0
        for tx in await self.repository.list_order_transactions(order_id):
            if tx.source_type != SourceType.ORDER_SETTLEMENT.value or tx.biz_type not in _SETTLEMENT_BIZ_TYPES:
                continue
            if tx.status == TxStatus.REVERSED.value:
                continue

            await self.repository.ensure_account(tx.user_id)
            marker = None
            if tx.status == TxStatus.FROZEN.value:
                await self._cancel_hold(tx.id)
            else:
                marker = await self._put_marker(
                    tx,
                    source_type=SourceType.REFUND_REVERSAL.value,
                    biz_type=BizType.REFUND_REVERSAL.value,
                    direction=TxDirection.OUT.value if tx.direction == TxDirection.IN.value else TxDirection.IN.value,
                    reversal_of_tx_id=tx.id,
                )
                await self._retire_marker(SourceType.WALLET_HOLD_RELEASE.value, tx.id)
            tx, _ = await self._transition(tx, status=TxStatus.REVERSED.value)
            if marker is not None:
                await self.repository.update_transaction(
                    marker.id,
                    available_after_cents=tx.available_after_cents,
                    frozen_after_cents=tx.frozen_after_cents,
                )
            reversed_count += 1

        if reversed_count:
            logger.info("Reversed %s settlement wallet transactions of order %s", reversed_count, order_id)
        return reversed_count

    # ------------------------------------------------------------------
    # repair support
    # ------------------------------------------------------------------
    async def rollback_order(self, order_id: str) -> dict[str, BalanceDelta]:
        """Undo every wallet effect recorded for an order and delete its transactions and holds.

        Deltas are the inverted signed effects of the recorded rows, grouped per user.
        """
        txs = list(await self.repository.list_order_transactions(order_id))
        deltas: dict[str, BalanceDelta] = defaultdict(BalanceDelta)
        for tx in txs:
            deltas[tx.user_id] = deltas[tx.user_id] + (-_effect_of(tx))

        for user_id, delta in deltas.items():
            if not delta.is_zero:
                await self.apply_balance_delta(user_id, delta)

        tx_ids = [tx.id for tx in txs]
        await self.repository.delete_holds_for_transactions(tx_ids)
        await self.repository.delete_transactions(tx_ids)
        return dict(deltas)

    async def released_earning_sources(self, order_id: str) -> set[str]:
        """Source ids of the order's settlement earnings that have already been released."""
        return {
            tx.source_id
            for tx in await self.repository.list_order_transactions(order_id)
            if tx.source_type == SourceType.ORDER_SETTLEMENT.value
            and tx.biz_type == BizType.SETTLEMENT_EARNING.value
            and tx.status == TxStatus.AVAILABLE.value
        }

    async def find_live_orphans(
        self,
        order_id: str,
        settlement_ids: set[str],
        removed_ids: Sequence[str] = (),
    ) -> list[WalletTransactionRecord]:
        """Settlement transactions still live although their settlement row is gone."""
        candidates = {tx.id: tx for tx in await self.repository.list_order_transactions(order_id)}
        for tx in await self.repository.list_settlement_transactions(removed_ids):
            candidates[tx.id] = tx

        orphans = []
        for tx in candidates.values():
            if tx.status == TxStatus.REVERSED.value or tx.source_type != SourceType.ORDER_SETTLEMENT.value:
                continue
            if tx.settlement_id not in settlement_ids or tx.source_id not in settlement_ids:
                orphans.append(self._to_transaction(tx))
        return orphans

    async def list_order_transactions(self, order_id: str) -> list[WalletTransactionRecord]:
        rows = await self.repository.list_order_transactions(order_id)
        return [self._to_transaction(row) for row in rows]

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    async def list_transactions(self, user_id: str, limit: int = 20, offset: int = 0) -> list[WalletTransactionRecord]:
        rows = await self.repository.list_transactions(user_id, limit, offset)
        return [self._to_transaction(row) for row in rows]

    async def list_holds(
        self,
        user_id: str,
        status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[WalletHoldRecord]:
        rows = await self.repository.list_holds(user_id, status, limit, offset)
        return [self._to_hold(row) for row in rows]

    async def reconcile(self, user_id: str) -> Reconciliation:
        """Recompute both buckets from transaction rows and compare with the account."""
        expected = BalanceDelta()
        frozen_txs: dict[str, int] = {}
        for tx in await self.repository.list_all_transactions(user_id):
            expected = expected + _effect_of(tx)
            if tx.status == TxStatus.FROZEN.value:
                frozen_txs[tx.id] = tx.amount_cents

        frozen_holds = {
            hold.earning_tx_id: hold.amount_cents
            for hold in await self.repository.list_user_holds(user_id)
            if hold.status == HoldStatus.FROZEN.value
        }
        account = await self.repository.get_account(user_id)
        result = Reconciliation(
            user_id=user_id,
            expected_available_cents=expected.available_cents,
            expected_frozen_cents=expected.frozen_cents,
            actual_available_cents=account.available_cents if account else 0,
            actual_frozen_cents=account.frozen_cents if account else 0,
            holds_consistent=frozen_holds == frozen_txs,
        )
        if not result.is_balanced:
            logger.warning("Wallet of user %s is out of balance: %s", user_id, result)
        return result

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    async def _transition(
        self,
        tx: WalletTransactionModel,
        **fields: Any,
    ) -> tuple[WalletTransactionModel, BalanceDelta]:
        before = _effect_of(tx)
        tx = await self.repository.update_transaction(tx.id, **fields)
        delta = _effect_of(tx) + (-before)
        await self._apply_and_stamp(tx.user_id, delta, tx)
        return tx, delta

    async def _apply_and_stamp(self, user_id: str, delta: BalanceDelta, tx: WalletTransactionModel) -> None:
        if delta.is_zero:
            account = await self.repository.get_account(user_id)
        else:
            account = await self.repository.update_balances(user_id, delta.available_cents, delta.frozen_cents)
        await self.repository.update_transaction(
            tx.id,
            available_after_cents=account.available_cents,
            frozen_after_cents=account.frozen_cents,
        )

    async def _put_hold(self, tx: WalletTransactionModel, amount: int, unlock_at: datetime) -> WalletHoldModel:
        hold = await self.repository.get_hold_for_transaction(tx.id)
        if hold is None:
            return await self.repository.add_hold(
                user_id=tx.user_id,
                earning_tx_id=tx.id,
                amount_cents=amount,
                unlock_at=unlock_at,
            )
        return await self.repository.update_hold(
            hold.id,
            amount_cents=amount,
            unlock_at=unlock_at,
            status=HoldStatus.FROZEN.value,
            released_at=None,
        )

    async def _cancel_hold(self, tx_id: str) -> None:
        hold = await self.repository.get_hold_for_transaction(tx_id)
        if hold is not None and hold.status == HoldStatus.FROZEN.value:
            await self.repository.update_hold(hold.id, status=HoldStatus.CANCELLED.value, released_at=utcnow())

    async def _put_marker(
        self,
        tx: WalletTransactionModel,
        *,
        source_type: str,
        biz_type: str,
        direction: str,
        reversal_of_tx_id: str | None = None,
    ) -> WalletTransactionModel:
        marker = await self.repository.get_transaction_by_source(source_type, tx.id)
        if marker is not None:
            return await self.repository.update_transaction(
                marker.id,
                amount_cents=tx.amount_cents,
                status=TxStatus.AVAILABLE.value,
                direction=direction,
            )
        return await self.repository.add_transaction(
            user_id=tx.user_id,
            direction=direction,
            biz_type=biz_type,
            amount_cents=tx.amount_cents,
            status=TxStatus.AVAILABLE.value,
            source_type=source_type,
            source_id=tx.id,
            order_id=tx.order_id,
            round_id=tx.round_id,
            settlement_id=tx.settlement_id,
            reversal_of_tx_id=reversal_of_tx_id,
        )

    async def _retire_marker(self, source_type: str, tx_id: str) -> None:
        marker = await self.repository.get_transaction_by_source(source_type, tx_id)
        if marker is not None and marker.status != TxStatus.REVERSED.value:
            await self.repository.update_transaction(marker.id, status=TxStatus.REVERSED.value)

    @staticmethod
    def _to_account(model: WalletAccountModel) -> WalletAccountSnapshot:
        return WalletAccountSnapshot(
            user_id=model.user_id,
            available_cents=model.available_cents,
            frozen_cents=model.frozen_cents,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _to_transaction(model: WalletTransactionModel) -> WalletTransactionRecord:
        return WalletTransactionRecord(
            id=model.id,
            user_id=model.user_id,
            direction=model.direction,
            biz_type=model.biz_type,
            amount_cents=model.amount_cents,
            status=model.status,
            source_type=model.source_type,
            source_id=model.source_id,
            order_id=model.order_id,
            round_id=model.round_id,
            settlement_id=model.settlement_id,
            reversal_of_tx_id=model.reversal_of_tx_id,
            available_after_cents=model.available_after_cents,
            frozen_after_cents=model.frozen_after_cents,
            created_at=ensure_utc(model.created_at),
        )

    @staticmethod
    def _to_hold(model: WalletHoldModel) -> WalletHoldRecord:
        return WalletHoldRecord(
            id=model.id,
            user_id=model.user_id,
            earning_tx_id=model.earning_tx_id,
            amount_cents=model.amount_cents,
            status=model.status,
            unlock_at=ensure_utc(model.unlock_at),
            released_at=ensure_utc(model.released_at),
        )
