"""Audit trail exports"""

from .models import AuditEntry
from .service import AuditService

__all__ = ["AuditEntry", "AuditService"]
