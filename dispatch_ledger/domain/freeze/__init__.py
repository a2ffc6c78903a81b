"""Freeze window exports"""

from .rules import FreezeWindow, compute_freeze_window, freeze_days_for

__all__ = ["FreezeWindow", "compute_freeze_window", "freeze_days_for"]
