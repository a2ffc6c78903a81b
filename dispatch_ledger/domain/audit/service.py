"""Audit trail service"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from dispatch_ledger.infrastructure.database.repositories.audit_repository import SqlAuditRepository

from .models import AuditEntry
from .repository import AuditRepository


@dataclass(slots=True)
class AuditService:
    repository: AuditRepository

    @classmethod
    def with_session(cls, session: AsyncSession) -> "AuditService":
        return cls(SqlAuditRepository(session))

    async def record(
        self,
        action: str,
        *,
        target_type: str,
        target_id: str | None,
        operator_id: str | None = None,
        old_data: Any = None,
        new_data: Any = None,
        remark: str | None = None,
    ) -> AuditEntry:
        model = await self.repository.add_entry(
            action=action,
            target_type=target_type,
            target_id=target_id,
            operator_id=operator_id,
            old_data=old_data,
            new_data=new_data,
            remark=remark[:255] if remark else None,
        )
        return AuditEntry.from_orm(model)

    async def list_for_target(self, target_type: str, target_id: str) -> list[AuditEntry]:
        rows = await self.repository.list_for_target(target_type, target_id)
        return [AuditEntry.from_orm(row) for row in rows]
