"""Repair previews and results."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from dispatch_ledger.domain.billing import CandidateRow
from dispatch_ledger.domain.settlements.models import SettlementRecord
from dispatch_ledger.domain.wallets.models import BalanceDelta, SyncResult

from .plan import ComparisonPlan


def fingerprint_rows(rows: Iterable[CandidateRow]) -> str:
    payload = sorted((row.to_payload() for row in rows), key=lambda p: (p["round_id"], p["worker_id"], p["settlement_type"]))
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class RepairPreview:
    preview_id: str
    order_id: str
    fingerprint: str
    expires_at: datetime
    candidates: list[CandidateRow]
    plan: ComparisonPlan
    allocations: Optional[dict[str, int]] = None


@dataclass(slots=True)
class RepairResult:
    order_id: str
    batch_id: str
    rollback_deltas: dict[str, BalanceDelta]
    records: list[SettlementRecord]
    deleted_settlement_ids: list[str] = field(default_factory=list)
    wallet_results: list[SyncResult] = field(default_factory=list)
    created_count: int = 0
    updated_count: int = 0
