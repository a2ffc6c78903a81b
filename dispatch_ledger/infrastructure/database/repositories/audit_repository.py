"""SQLAlchemy repository for audit entries."""

from __future__ import annotations

import json
from typing import Any, Sequence

from sqlalchemy import select

from dispatch_ledger.db.models import AuditLog as AuditLogModel
from dispatch_ledger.domain.common import AsyncRepository


def _dump(data: Any) -> str | None:
    if data is None:
        return None
    return json.dumps(data, ensure_ascii=False, default=str, sort_keys=True)


class SqlAuditRepository(AsyncRepository[AuditLogModel]):
    async def add_entry(
        self,
        *,
        action: str,
        target_type: str,
        target_id: str | None,
        operator_id: str | None,
        old_data: Any,
        new_data: Any,
        remark: str | None,
    ) -> AuditLogModel:
        model = AuditLogModel(
            action=action,
            target_type=target_type,
            target_id=target_id,
            operator_id=operator_id,
            old_data=_dump(old_data),
            new_data=_dump(new_data),
            remark=remark,
        )
        return await self.add(model)

    async def list_for_target(self, target_type: str, target_id: str) -> Sequence[AuditLogModel]:
        stmt = (
            select(AuditLogModel)
            .where(AuditLogModel.target_type == target_type, AuditLogModel.target_id == target_id)
            .order_by(AuditLogModel.id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
