"""Order snapshot exports"""

from .models import (
    SETTLED_ROUND_STATUSES,
    BillingPolicy,
    OrderSnapshot,
    ParticipantSnapshot,
    RoundSnapshot,
    RoundStatus,
    WorkerSnapshot,
)
from .repository import OrderSnapshotRepository

__all__ = [
    "SETTLED_ROUND_STATUSES",
    "BillingPolicy",
    "OrderSnapshot",
    "OrderSnapshotRepository",
    "ParticipantSnapshot",
    "RoundSnapshot",
    "RoundStatus",
    "WorkerSnapshot",
]
