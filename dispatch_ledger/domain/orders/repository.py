"""Repository protocol for loading order snapshots."""

from __future__ import annotations

from typing import Protocol

from .models import OrderSnapshot


class OrderSnapshotRepository(Protocol):
    async def load_snapshot(self, order_id: str) -> OrderSnapshot | None:
        ...

    async def get_order_id_for_round(self, round_id: str) -> str | None:
        ...

    async def any_round_settling(self, order_id: str) -> bool:
        ...
