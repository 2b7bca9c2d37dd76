"""
Tree Metrics Extractor - depth, interactive density and layout fragmentation.

All three measurements are pure functions of a ``DocumentTreeView``. A view
without a root, or a root without children, yields zeros rather than an error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Tuple

import structlog

from cogload.protocols import DocumentTreeView, RawMeasurements

if TYPE_CHECKING:
    from cogload.metrics.tree import LayoutNode, Rect, Viewport

logger = structlog.get_logger(__name__)

DEFAULT_REGION_MIN_SIZE = 100.0


def intersects_viewport(rect: Rect, viewport: Viewport) -> bool:
    """True if the rectangle overlaps the viewport rectangle."""
    return rect.bottom > 0 and rect.right > 0 and rect.top < viewport.height and rect.left < viewport.width


def compute_max_depth(view: DocumentTreeView) -> int:
    """
    Maximum element depth below the root, with the root at depth 1.

    Uses an explicit stack so very deep documents cannot exhaust the
    interpreter's recursion limit.
    """
    root = view.root
    if root is None:
        return 0

    max_depth = 0
    stack: List[Tuple[LayoutNode, int]] = [(root, 1)]
    while stack:
        node, depth = stack.pop()
        if depth > max_depth:
            max_depth = depth
        for child in view.children(node):
            stack.append((child, depth + 1))
    return max_depth


def count_interactive_in_view(view: DocumentTreeView) -> int:
    """Count interactive elements with a non-empty box that overlaps the viewport."""
    viewport = view.viewport
    count = 0
    for element in view.iter_elements():
        if not view.is_interactive(element):
            continue
        rect = view.rect(element)
        if rect.width > 0 and rect.height > 0 and intersects_viewport(rect, viewport):
            count += 1
    return count


def compute_density(interactive_in_view: int, viewport: Viewport) -> float:
    """In-view interactive count per unit of viewport area (area floored to 1)."""
    return interactive_in_view / max(viewport.width * viewport.height, 1)


def compute_fragmentation(view: DocumentTreeView, min_size: float = DEFAULT_REGION_MIN_SIZE) -> int:
    """Count the root's direct children that are large, visible regions."""
    root = view.root
    if root is None:
        return 0

    viewport = view.viewport
    regions = 0
    for child in view.children(root):
        rect = view.rect(child)
        if rect.width > min_size and rect.height > min_size and intersects_viewport(rect, viewport):
            regions += 1
    return regions


class TreeMetricsExtractor:
    """Produces ``RawMeasurements`` from a document tree view."""

    def __init__(self, region_min_size: float = DEFAULT_REGION_MIN_SIZE) -> None:
        self.region_min_size = region_min_size

    def extract(self, view: DocumentTreeView) -> RawMeasurements:
        max_depth = compute_max_depth(view)
        interactive_in_view = count_interactive_in_view(view)
        fragmentation = compute_fragmentation(view, self.region_min_size)

        measurements = RawMeasurements(
            max_depth=max_depth,
            interactive_in_view=interactive_in_view,
            density=compute_density(interactive_in_view, view.viewport),
            fragmentation=fragmentation,
        )
        logger.debug(
            "Measurements extracted",
            max_depth=max_depth,
            interactive_in_view=interactive_in_view,
            fragmentation=fragmentation,
        )
        return measurements
