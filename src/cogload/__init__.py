"""
cogload - cognitive load metrics for rendered documents.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config
from .container import DependencyContainer
from .control import ControlSurface
from .sync import SynchronizationLayer
from .trigger import RecomputeCoordinator

__all__ = ["__version__", "Config", "DependencyContainer", "ControlSurface", "SynchronizationLayer", "RecomputeCoordinator"]
