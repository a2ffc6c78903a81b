"""SQLAlchemy repository for settlement repair previews."""

from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy import delete

from dispatch_ledger.db.models import SettlementPreview as SettlementPreviewModel
from dispatch_ledger.domain.common import AsyncRepository


class SqlPreviewRepository(AsyncRepository[SettlementPreviewModel]):
    async def add_preview(
        self,
        *,
        order_id: str,
        fingerprint: str,
        payload: dict,
        expires_at: datetime,
    ) -> SettlementPreviewModel:
        model = SettlementPreviewModel(
            order_id=order_id,
            fingerprint=fingerprint,
            payload=json.dumps(payload, ensure_ascii=False, sort_keys=True),
            expires_at=expires_at,
        )
        return await self.add(model)

    async def get_preview(self, preview_id: str) -> SettlementPreviewModel | None:
        return await self.session.get(SettlementPreviewModel, preview_id)

    async def delete_preview(self, preview_id: str) -> None:
        stmt = (
            delete(SettlementPreviewModel)
            .where(SettlementPreviewModel.id == preview_id)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def purge_expired(self, now: datetime) -> int:
        stmt = (
            delete(SettlementPreviewModel)
            .where(SettlementPreviewModel.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0
