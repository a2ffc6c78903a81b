"""SQLAlchemy implementation for loading order snapshots."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dispatch_ledger.core.clock import ensure_utc
from dispatch_ledger.db.models import (
    DispatchParticipant,
    DispatchRound,
    Order,
    Worker,
)
from dispatch_ledger.domain.common import AsyncRepository
from dispatch_ledger.domain.orders.models import (
    OrderSnapshot,
    ParticipantSnapshot,
    RoundSnapshot,
    RoundStatus,
    WorkerSnapshot,
)


def _decimal(value) -> Decimal | None:
    return None if value is None else Decimal(value)


def _utc(value):
    return None if value is None else ensure_utc(value)


class SqlOrderRepository(AsyncRepository[Order]):
    async def get_order(self, order_id: str) -> Order | None:
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .options(
                selectinload(Order.dispatcher),
                selectinload(Order.rounds)
                .selectinload(DispatchRound.participants)
                .selectinload(DispatchParticipant.worker),
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def load_snapshot(self, order_id: str) -> OrderSnapshot | None:
        order = await self.get_order(order_id)
        if order is None:
            return None
        return self._to_snapshot(order)

    async def get_order_id_for_round(self, round_id: str) -> str | None:
        stmt = select(DispatchRound.order_id).where(DispatchRound.id == round_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def any_round_settling(self, order_id: str) -> bool:
        stmt = select(func.count(DispatchRound.id)).where(
            DispatchRound.order_id == order_id,
            DispatchRound.status == RoundStatus.SETTLING.value,
        )
        result = await self.session.execute(stmt)
        return (result.scalar_one() or 0) > 0

    @classmethod
    def _to_snapshot(cls, order: Order) -> OrderSnapshot:
        return OrderSnapshot(
            id=order.id,
            billing_policy=order.billing_policy,
            paid_amount_cents=order.paid_amount_cents or 0,
            receivable_amount_cents=order.receivable_amount_cents or 0,
            is_gifted=bool(order.is_gifted),
            status=order.status,
            ordered_hours=_decimal(order.ordered_hours),
            guaranteed_quota=_decimal(order.guaranteed_quota),
            commission_rate=_decimal(order.commission_rate),
            product_category=order.product_category,
            product_price_cents=order.product_price_cents,
            product_commission_rate=_decimal(order.product_commission_rate),
            dispatcher=cls._to_worker(order.dispatcher) if order.dispatcher else None,
            rounds=tuple(cls._to_round(r) for r in order.rounds),
        )

    @classmethod
    def _to_round(cls, round_: DispatchRound) -> RoundSnapshot:
        return RoundSnapshot(
            id=round_.id,
            round_no=round_.round_no,
            status=round_.status,
            participants=tuple(cls._to_participant(p) for p in round_.participants),
            accepted_all_at=_utc(round_.accepted_all_at),
            archived_at=_utc(round_.archived_at),
            completed_at=_utc(round_.completed_at),
            deduct_minutes=round_.deduct_minutes or 0,
            billable_minutes=round_.billable_minutes,
            billable_hours=_decimal(round_.billable_hours),
            allocated_income_cents=round_.allocated_income_cents,
        )

    @classmethod
    def _to_participant(cls, participant: DispatchParticipant) -> ParticipantSnapshot:
        return ParticipantSnapshot(
            id=participant.id,
            worker=cls._to_worker(participant.worker),
            accepted_at=_utc(participant.accepted_at),
            rejected_at=_utc(participant.rejected_at),
            contribution=_decimal(participant.contribution),
            is_active=bool(participant.is_active),
        )

    @staticmethod
    def _to_worker(worker: Worker) -> WorkerSnapshot:
        return WorkerSnapshot(
            id=worker.id,
            name=worker.name,
            role=worker.role,
            tier_rate=_decimal(worker.tier_rate),
        )
