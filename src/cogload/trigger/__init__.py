"""Debounced recomputation triggers."""

from __future__ import annotations

from .coordinator import RecomputeCoordinator
from .debounce import Debouncer, Scheduler

__all__ = ["RecomputeCoordinator", "Debouncer", "Scheduler"]
