"""Repository interface for settlement rows and the round lock."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, Sequence

from dispatch_ledger.db.models import OrderSettlement as OrderSettlementModel


class SettlementRepository(Protocol):
    async def list_for_order(self, order_id: str) -> Sequence[OrderSettlementModel]:
        ...

    async def insert_row(self, **fields: Any) -> OrderSettlementModel:
        ...

    async def update_row(self, settlement_id: str, **fields: Any) -> OrderSettlementModel:
        ...

    async def delete_rows(self, settlement_ids: Sequence[str]) -> int:
        ...

    async def mark_paid(self, settlement_ids: Sequence[str], paid_at: datetime) -> Sequence[OrderSettlementModel]:
        ...

    async def transition_round(self, round_id: str, from_status: str, to_status: str, **fields: Any) -> int:
        ...

    async def round_exists(self, round_id: str) -> bool:
        ...

    async def set_order_status(self, order_id: str, status: str) -> None:
        ...

    async def update_round(self, round_id: str, **fields: Any) -> int:
        ...
