"""SQLAlchemy implementation for settlement rows and round state."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from dispatch_ledger.db.models import DispatchRound, Order, OrderSettlement
from dispatch_ledger.domain.common import (
    AsyncRepository,
    SettlementConflictError,
    SettlementNotFoundError,
)


class SqlSettlementRepository(AsyncRepository[OrderSettlement]):
    async def list_for_order(self, order_id: str) -> Sequence[OrderSettlement]:
        stmt = (
            select(OrderSettlement)
            .where(OrderSettlement.order_id == order_id)
            .order_by(OrderSettlement.round_id, OrderSettlement.worker_id, OrderSettlement.settlement_type)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def insert_row(self, **fields: Any) -> OrderSettlement:
        model = OrderSettlement(**fields)
        try:
            async with self.session.begin_nested():
                self.session.add(model)
                await self.session.flush()
        except IntegrityError as exc:
            raise SettlementConflictError(
                "结算明细已被并发写入，请重新提交",
                round_id=fields.get("round_id"),
                worker_id=fields.get("worker_id"),
                settlement_type=fields.get("settlement_type"),
            ) from exc
        await self.session.refresh(model)
        return model

    async def update_row(self, settlement_id: str, **fields: Any) -> OrderSettlement:
        model = await self.session.get(OrderSettlement, settlement_id)
        if model is None:
            raise SettlementNotFoundError(f"结算明细不存在: {settlement_id}", settlement_id=settlement_id)
        for key, value in fields.items():
            setattr(model, key, value)
        await self.session.flush()
        return model

    async def delete_rows(self, settlement_ids: Sequence[str]) -> int:
        if not settlement_ids:
            return 0
        stmt = (
            delete(OrderSettlement)
            .where(OrderSettlement.id.in_(list(settlement_ids)))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def mark_paid(self, settlement_ids: Sequence[str], paid_at: datetime) -> Sequence[OrderSettlement]:
        if not settlement_ids:
            return []
        stmt = (
            update(OrderSettlement)
            .where(
                OrderSettlement.id.in_(list(settlement_ids)),
                OrderSettlement.payment_status == "UNPAID",
            )
            .values(payment_status="PAID", paid_at=paid_at)
            .execution_options(synchronize_session="fetch")
            .returning(OrderSettlement)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def transition_round(self, round_id: str, from_status: str, to_status: str, **fields: Any) -> int:
        """Conditional status update; the affected row count tells whether the caller owns the round."""
        stmt = (
            update(DispatchRound)
            .where(DispatchRound.id == round_id, DispatchRound.status == from_status)
            .values(status=to_status, **fields)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def update_round(self, round_id: str, **fields: Any) -> int:
        stmt = (
            update(DispatchRound)
            .where(DispatchRound.id == round_id)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def round_exists(self, round_id: str) -> bool:
        stmt = select(DispatchRound.id).where(DispatchRound.id == round_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def set_order_status(self, order_id: str, status: str) -> None:
        stmt = (
            update(Order)
            .where(Order.id == order_id)
            .values(status=status)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.execute(stmt)
