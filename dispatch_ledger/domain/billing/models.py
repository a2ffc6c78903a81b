"""Candidate settlement rows produced by the billing calculators."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class SettlementType(str, Enum):
    BASE = "BASE"
    PENALTY = "PENALTY"
    CARRY_COMPENSATION = "CARRY_COMPENSATION"
    SERVICE_COORDINATOR = "SERVICE_COORDINATOR"


@dataclass(slots=True, frozen=True)
class CandidateRow:
    order_id: str
    round_id: str
    round_no: int
    worker_id: str
    settlement_type: str
    calculated_cents: int

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.round_id, self.worker_id, self.settlement_type)

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)
