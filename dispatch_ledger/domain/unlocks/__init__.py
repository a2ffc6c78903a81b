"""Unlock sweeper exports"""

from .sweeper import SweepResult, UnlockSweeper

__all__ = ["SweepResult", "UnlockSweeper"]
