"""SQLAlchemy implementation for the wallet ledger"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import and_, delete, desc, or_, select, update
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from dispatch_ledger.db.models import WalletAccount, WalletHold, WalletTransaction
from dispatch_ledger.domain.common import AsyncRepository, SettlementConflictError, SettlementNotFoundError

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SqlWalletRepository(AsyncRepository[WalletTransaction]):
    async def ensure_account(self, user_id: str) -> None:
        """Insert-if-missing; concurrent callers never see a unique-key failure."""
        dialect = self.session.get_bind().dialect.name
        values = {"user_id": user_id, "available_cents": 0, "frozen_cents": 0}
        if dialect == "mysql":
            stmt = mysql.insert(WalletAccount).values(**values).prefix_with("IGNORE")
        else:
            insert = _INSERT_BY_DIALECT.get(dialect, sqlite.insert)
            stmt = insert(WalletAccount).values(**values).on_conflict_do_nothing(index_elements=["user_id"])
        await self.session.execute(stmt)

    async def get_account(self, user_id: str) -> WalletAccount | None:
        stmt = (
            select(WalletAccount)
            .where(WalletAccount.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def update_balances(self, user_id: str, delta_available: int, delta_frozen: int) -> WalletAccount:
        stmt = (
            update(WalletAccount)
            .where(WalletAccount.user_id == user_id)
            .values(
                available_cents=WalletAccount.available_cents + delta_available,
                frozen_cents=WalletAccount.frozen_cents + delta_frozen,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        account = await self.get_account(user_id) if result.rowcount else None
        if account is None:
            raise SettlementNotFoundError(f"钱包账户不存在: {user_id}", user_id=user_id)
        return account

    async def get_transaction_by_source(self, source_type: str, source_id: str) -> WalletTransaction | None:
        stmt = select(WalletTransaction).where(
            WalletTransaction.source_type == source_type,
            WalletTransaction.source_id == source_id,
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_transaction(self, tx_id: str) -> WalletTransaction | None:
        return await self.session.get(WalletTransaction, tx_id)

    async def add_transaction(self, **fields: Any) -> WalletTransaction:
        tx = WalletTransaction(**fields)
        try:
            async with self.session.begin_nested():
                self.session.add(tx)
                await self.session.flush()
        except IntegrityError as exc:
            raise SettlementConflictError(
                "钱包流水已被并发写入，请重新提交",
                source_type=fields.get("source_type"),
                source_id=fields.get("source_id"),
            ) from exc
        await self.session.refresh(tx)
        return tx

    async def update_transaction(self, tx_id: str, **fields: Any) -> WalletTransaction:
        tx = await self.get_transaction(tx_id)
        if tx is None:
            raise SettlementNotFoundError(f"钱包流水不存在: {tx_id}", tx_id=tx_id)
        for key, value in fields.items():
            setattr(tx, key, value)
        await self.session.flush()
        return tx

    async def get_hold_for_transaction(self, earning_tx_id: str) -> WalletHold | None:
        stmt = select(WalletHold).where(WalletHold.earning_tx_id == earning_tx_id)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_hold(self, hold_id: str) -> WalletHold | None:
        return await self.session.get(WalletHold, hold_id, populate_existing=True)

    async def add_hold(
        self,
        *,
        user_id: str,
        earning_tx_id: str,
        amount_cents: int,
        unlock_at: datetime,
    ) -> WalletHold:
        hold = WalletHold(
            user_id=user_id,
            earning_tx_id=earning_tx_id,
            amount_cents=amount_cents,
            status="FROZEN",
            unlock_at=unlock_at,
        )
        self.session.add(hold)
        await self.session.flush()
        return hold

    async def update_hold(self, hold_id: str, **fields: Any) -> WalletHold:
        hold = await self.session.get(WalletHold, hold_id)
        if hold is None:
            raise SettlementNotFoundError(f"冻结单不存在: {hold_id}", hold_id=hold_id)
        for key, value in fields.items():
            setattr(hold, key, value)
        await self.session.flush()
        return hold

    async def list_order_transactions(self, order_id: str) -> Sequence[WalletTransaction]:
        stmt = (
            select(WalletTransaction)
            .where(WalletTransaction.order_id == order_id)
            .order_by(WalletTransaction.created_at, WalletTransaction.id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_settlement_transactions(self, settlement_ids: Sequence[str]) -> Sequence[WalletTransaction]:
        if not settlement_ids:
            return []
        ids = list(settlement_ids)
        stmt = select(WalletTransaction).where(
            or_(
                WalletTransaction.settlement_id.in_(ids),
                and_(
                    WalletTransaction.source_type == "ORDER_SETTLEMENT",
                    WalletTransaction.source_id.in_(ids),
                ),
            )
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_transactions(self, user_id: str, limit: int, offset: int) -> Sequence[WalletTransaction]:
        stmt = (
            select(WalletTransaction)
            .where(WalletTransaction.user_id == user_id)
            .order_by(desc(WalletTransaction.created_at), desc(WalletTransaction.id))
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_all_transactions(self, user_id: str) -> Sequence[WalletTransaction]:
        stmt = select(WalletTransaction).where(WalletTransaction.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_holds(self, user_id: str, status: str | None, limit: int, offset: int) -> Sequence[WalletHold]:
        stmt = select(WalletHold).where(WalletHold.user_id == user_id)
        if status:
            stmt = stmt.where(WalletHold.status == status)
        stmt = stmt.order_by(WalletHold.unlock_at, WalletHold.id).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_user_holds(self, user_id: str) -> Sequence[WalletHold]:
        stmt = select(WalletHold).where(WalletHold.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_due_hold_ids(self, now: datetime, limit: int, exclude: Sequence[str]) -> list[str]:
        stmt = select(WalletHold.id).where(
            WalletHold.status == "FROZEN",
            WalletHold.unlock_at <= now,
        )
        if exclude:
            stmt = stmt.where(WalletHold.id.not_in(list(exclude)))
        stmt = stmt.order_by(WalletHold.unlock_at, WalletHold.id).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_transactions(self, tx_ids: Sequence[str]) -> int:
        if not tx_ids:
            return 0
        stmt = (
            delete(WalletTransaction)
            .where(WalletTransaction.id.in_(list(tx_ids)))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def delete_holds_for_transactions(self, tx_ids: Sequence[str]) -> int:
        if not tx_ids:
            return 0
        stmt = (
            delete(WalletHold)
            .where(WalletHold.earning_tx_id.in_(list(tx_ids)))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0
