"""
Layout Tree - captured element tree with viewport geometry.

A ``LayoutDocument`` is what a host hands over for one recomputation: the
element tree under the document body, each element's bounding rectangle in
viewport coordinates, and the viewport size. Text and comment nodes are not
part of the model; hosts drop them at capture time.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cogload.protocols import ReadyState

# Tags that are interactive on their own
INTERACTIVE_TAGS = frozenset({"button", "input", "select", "textarea"})

# Explicit ARIA roles that make any element interactive
INTERACTIVE_ROLES = frozenset({"button", "link"})


class Rect(BaseModel):
    """Bounding rectangle in viewport coordinates (CSS pixels)."""

    model_config = ConfigDict(frozen=True)

    top: float = 0.0
    left: float = 0.0
    bottom: float = 0.0
    right: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def fill_edges(cls, data: Any) -> Any:
        """Accept either edges or an x/y/width/height box and derive the rest."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "x" in data and "left" not in data:
            data["left"] = data.pop("x")
        if "y" in data and "top" not in data:
            data["top"] = data.pop("y")
        top = float(data.get("top", 0.0))
        left = float(data.get("left", 0.0))
        if "bottom" not in data:
            data["bottom"] = top + float(data.get("height", 0.0))
        if "right" not in data:
            data["right"] = left + float(data.get("width", 0.0))
        if "height" not in data:
            data["height"] = float(data["bottom"]) - top
        if "width" not in data:
            data["width"] = float(data["right"]) - left
        return data

    @classmethod
    def from_box(cls, left: float, top: float, width: float, height: float) -> Rect:
        return cls(left=left, top=top, width=width, height=height)


class Viewport(BaseModel):
    """Visible area of the document."""

    model_config = ConfigDict(frozen=True)

    width: float = Field(ge=0)
    height: float = Field(ge=0)

    @property
    def area(self) -> float:
        return self.width * self.height


class LayoutNode(BaseModel):
    """One element of the captured tree."""

    tag: str
    attributes: Dict[str, str] = Field(default_factory=dict)
    rect: Rect = Field(default_factory=Rect)
    children: List[LayoutNode] = Field(default_factory=list)

    @field_validator("tag")
    @classmethod
    def normalize_tag(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("attributes", mode="before")
    @classmethod
    def stringify_attributes(cls, v: Any) -> Dict[str, str]:
        if not v:
            return {}
        return {str(k).lower(): "" if val is None else str(val) for k, val in dict(v).items()}


class LayoutDocument(BaseModel):
    """A captured document: location, readiness, viewport and element tree."""

    url: str = ""
    ready_state: ReadyState = ReadyState.COMPLETE
    viewport: Viewport
    root: Optional[LayoutNode] = None

    @classmethod
    def from_json(cls, path: Path) -> LayoutDocument:
        with open(path, "r", encoding="utf-8") as f:
            return cls.model_validate(json.load(f))


def is_interactive(node: LayoutNode) -> bool:
    """
    Classify an element as interactive.

    Matches hyperlinks with a target (``a[href]``), buttons, form inputs,
    selects, text areas, and any element whose role is exactly ``button`` or
    ``link`` (attribute values are case-sensitive).
    """
    if node.tag in INTERACTIVE_TAGS:
        return True
    if node.tag == "a" and "href" in node.attributes:
        return True
    return node.attributes.get("role") in INTERACTIVE_ROLES


class LayoutTreeView:
    """``DocumentTreeView`` over a ``LayoutDocument``."""

    def __init__(self, document: LayoutDocument) -> None:
        self.document = document

    @property
    def root(self) -> Optional[LayoutNode]:
        return self.document.root

    @property
    def viewport(self) -> Viewport:
        return self.document.viewport

    def children(self, element: LayoutNode) -> List[LayoutNode]:
        return element.children

    def rect(self, element: LayoutNode) -> Rect:
        return element.rect

    def is_interactive(self, element: LayoutNode) -> bool:
        return is_interactive(element)

    def iter_elements(self) -> Iterator[LayoutNode]:
        """Yield every element once, in document order."""
        if self.root is None:
            return
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))
