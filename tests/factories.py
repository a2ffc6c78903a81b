"""Builders for order snapshots and seeded database rows."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Mapping, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dispatch_ledger.db.models import DispatchParticipant, DispatchRound, Order, Worker
from dispatch_ledger.domain.orders import OrderSnapshot, ParticipantSnapshot, RoundSnapshot, WorkerSnapshot
from dispatch_ledger.infrastructure.database.session import session_scope

T0 = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


def minutes(value: int) -> datetime:
    return T0 + timedelta(minutes=value)


def worker(worker_id: str, *, role: str = "worker", tier_rate=None) -> WorkerSnapshot:
    return WorkerSnapshot(
        id=worker_id,
        name=worker_id,
        role=role,
        tier_rate=None if tier_rate is None else Decimal(str(tier_rate)),
    )


def participant(
    worker_id: str,
    *,
    accepted_at: Optional[datetime] = T0,
    contribution=None,
    is_active: bool = True,
    tier_rate=None,
) -> ParticipantSnapshot:
    return ParticipantSnapshot(
        id=f"p-{worker_id}",
        worker=worker(worker_id, tier_rate=tier_rate),
        accepted_at=accepted_at,
        contribution=None if contribution is None else Decimal(str(contribution)),
        is_active=is_active,
    )


def archived_round(round_no: int, participants: Sequence[ParticipantSnapshot], *, end_minute: int, **fields) -> RoundSnapshot:
    return RoundSnapshot(
        id=f"r{round_no}",
        round_no=round_no,
        status="ARCHIVED",
        participants=tuple(participants),
        archived_at=minutes(end_minute),
        **fields,
    )


def completed_round(round_no: int, participants: Sequence[ParticipantSnapshot], *, end_minute: int, **fields) -> RoundSnapshot:
    return RoundSnapshot(
        id=f"r{round_no}",
        round_no=round_no,
        status="COMPLETED",
        participants=tuple(participants),
        completed_at=minutes(end_minute),
        **fields,
    )


def order(policy: str = "DURATION", rounds: Sequence[RoundSnapshot] = (), **fields) -> OrderSnapshot:
    fields.setdefault("paid_amount_cents", 100000)
    for key in ("ordered_hours", "guaranteed_quota", "commission_rate", "product_commission_rate"):
        if fields.get(key) is not None:
            fields[key] = Decimal(str(fields[key]))
    return OrderSnapshot(id="o1", billing_policy=policy, rounds=tuple(rounds), **fields)


class Seeder:
    """Writes workers, orders and dispatch rounds in committed transactions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def worker(self, name: str, *, role: str = "worker", tier_rate=None) -> str:
        async with session_scope(self.session_factory) as session:
            model = Worker(id=name, name=name, role=role, tier_rate=tier_rate)
            session.add(model)
        return name

    async def order(self, order_id: str = "o1", *, billing_policy: str = "DURATION", **fields) -> str:
        fields.setdefault("paid_amount_cents", 100000)
        fields.setdefault("status", "IN_PROGRESS")
        async with session_scope(self.session_factory) as session:
            session.add(Order(id=order_id, billing_policy=billing_policy, **fields))
        return order_id

    async def round(
        self,
        order_id: str,
        round_no: int,
        workers: Sequence[str],
        *,
        status: str = "ACCEPTED",
        accepted_at: datetime = T0,
        contributions: Mapping[str, object] | None = None,
        **fields,
    ) -> str:
        round_id = f"{order_id}-r{round_no}"
        contributions = contributions or {}
        async with session_scope(self.session_factory) as session:
            session.add(
                DispatchRound(
                    id=round_id,
                    order_id=order_id,
                    round_no=round_no,
                    status=status,
                    accepted_all_at=accepted_at,
                    **fields,
                )
            )
            await session.flush()
            for worker_id in workers:
                session.add(
                    DispatchParticipant(
                        round_id=round_id,
                        worker_id=worker_id,
                        accepted_at=accepted_at,
                        contribution=contributions.get(worker_id),
                    )
                )
        return round_id

    async def update_round(self, round_id: str, **fields) -> None:
        async with session_scope(self.session_factory) as session:
            model = await session.get(DispatchRound, round_id)
            for key, value in fields.items():
                setattr(model, key, value)

    async def deactivate(self, round_id: str, worker_id: str) -> None:
        async with session_scope(self.session_factory) as session:
            await session.execute(
                update(DispatchParticipant)
                .where(DispatchParticipant.round_id == round_id, DispatchParticipant.worker_id == worker_id)
                .values(is_active=False)
            )
