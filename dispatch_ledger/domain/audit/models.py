"""Audit log domain model."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from dispatch_ledger.core.clock import ensure_utc
from dispatch_ledger.db import models as orm


def _load(text: str | None) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


@dataclass(slots=True)
class AuditEntry:
    id: int
    operator_id: Optional[str]
    action: str
    target_type: str
    target_id: Optional[str]
    old_data: Any
    new_data: Any
    remark: Optional[str]
    created_at: Optional[datetime]

    @classmethod
    def from_orm(cls, instance: orm.AuditLog) -> "AuditEntry":
        return cls(
            id=int(instance.id),
            operator_id=instance.operator_id,
            action=instance.action,
            target_type=instance.target_type,
            target_id=instance.target_id,
            old_data=_load(instance.old_data),
            new_data=_load(instance.new_data),
            remark=instance.remark,
            created_at=ensure_utc(instance.created_at),
        )
