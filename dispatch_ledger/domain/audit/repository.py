"""Repository protocol for persisting audit entries."""

from __future__ import annotations

from typing import Any, Protocol, Sequence

from dispatch_ledger.db.models import AuditLog as AuditLogModel


class AuditRepository(Protocol):
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
        ...

    async def list_for_target(self, target_type: str, target_id: str) -> Sequence[AuditLogModel]:
        ...
