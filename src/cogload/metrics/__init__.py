"""Document metrics, load scoring and snapshot assembly."""

from __future__ import annotations

from .extractor import (
    TreeMetricsExtractor,
    compute_fragmentation,
    compute_max_depth,
    count_interactive_in_view,
    intersects_viewport,
)
from .scoring import LoadScoringModel
from .snapshot import assemble_snapshot, now_millis
from .tree import LayoutDocument, LayoutNode, LayoutTreeView, Rect, Viewport, is_interactive

__all__ = [
    "TreeMetricsExtractor",
    "LoadScoringModel",
    "assemble_snapshot",
    "now_millis",
    "compute_max_depth",
    "count_interactive_in_view",
    "compute_fragmentation",
    "intersects_viewport",
    "LayoutDocument",
    "LayoutNode",
    "LayoutTreeView",
    "Rect",
    "Viewport",
    "is_interactive",
]
