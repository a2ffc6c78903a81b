"""Repository protocol for persisted repair previews."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from dispatch_ledger.db.models import SettlementPreview as SettlementPreviewModel


class PreviewRepository(Protocol):
    async def add_preview(
        self,
        *,
        order_id: str,
        fingerprint: str,
        payload: dict,
        expires_at: datetime,
    ) -> SettlementPreviewModel:
        ...

    async def get_preview(self, preview_id: str) -> SettlementPreviewModel | None:
        ...

    async def delete_preview(self, preview_id: str) -> None:
        ...

    async def purge_expired(self, now: datetime) -> int:
        ...
