"""Commission resolution exports"""

from .resolver import CommissionResolution, CommissionTable, RateSource, resolve_commission

__all__ = [
    "CommissionResolution",
    "CommissionTable",
    "RateSource",
    "resolve_commission",
]
