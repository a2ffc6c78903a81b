"""Settlement repair exports"""

from .models import RepairPreview, RepairResult, fingerprint_rows
from .plan import ComparisonPlan, PlanItem, PlanNote, PlanSummary, RoundPlan, Subtotal, build_comparison_plan
from .service import RepairService

__all__ = [
    "ComparisonPlan",
    "PlanItem",
    "PlanNote",
    "PlanSummary",
    "RepairPreview",
    "RepairResult",
    "RepairService",
    "RoundPlan",
    "Subtotal",
    "build_comparison_plan",
    "fingerprint_rows",
]
