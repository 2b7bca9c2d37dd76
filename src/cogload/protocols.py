"""
Core contracts and value objects for cogload.

This module defines the data structures that flow through the recomputation
pipeline (measurements, scores, snapshots) and the protocols the pipeline
depends on (document tree views, host environments, key-value stores).

Architecture Overview:
- Pure metrics layer: tree view -> RawMeasurements -> ScoreResult -> Snapshot
- Trigger layer: debounced event sources decide when the metrics layer runs
- Sync layer: the latest snapshot is written to a shared store and observers
  are notified of every write in order
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Protocol

if TYPE_CHECKING:
    from cogload.metrics.tree import LayoutNode, Rect, Viewport

# ============================================================================
# Enums and Constants
# ============================================================================


class LoadLabel(Enum):
    """Discrete severity label derived from the raw score."""

    LOW = "Low Load"
    MEDIUM = "Medium Load"
    HIGH = "High Load"

    @property
    def badge_class(self) -> str:
        return self.name.lower()


class ReadyState(Enum):
    """Document readiness as reported by the host environment."""

    LOADING = "loading"
    INTERACTIVE = "interactive"
    COMPLETE = "complete"

    @property
    def is_ready(self) -> bool:
        return self is not ReadyState.LOADING


class HostEvent(Enum):
    """Events a host environment can deliver to the coordinator."""

    READY = "ready"
    RESIZE = "resize"
    SCROLL = "scroll"


class TriggerSource(Enum):
    """Independent sources that can cause a recomputation."""

    INITIAL = "initial"
    RESIZE = "resize"
    SCROLL = "scroll"
    MANUAL = "manual"


SUPPORTED_SCHEMES = ("http", "https", "file")

# ============================================================================
# Value Objects
# ============================================================================


@dataclass(frozen=True)
class RawMeasurements:
    """Structural measurements taken from one document tree view."""

    max_depth: int = 0
    interactive_in_view: int = 0
    density: float = 0.0
    fragmentation: int = 0

    def __post_init__(self) -> None:
        if self.max_depth < 0 or self.interactive_in_view < 0 or self.fragmentation < 0:
            raise ValueError("Measurements cannot be negative")
        if self.density < 0:
            raise ValueError("Density cannot be negative")


@dataclass(frozen=True)
class ScoreResult:
    """Normalized cognitive load score and its sub-terms."""

    raw_score: float
    label: LoadLabel
    depth_term: float
    density_term: float
    fragment_term: float


@dataclass(frozen=True)
class Snapshot:
    """
    One immutable bundle of measurements, score, resource identity and capture time.

    The store holds snapshots as flat records; ``to_record``/``from_record``
    convert between the two representations.
    """

    measurements: RawMeasurements
    score: ScoreResult
    source_url: str
    captured_at_millis: int

    def to_record(self) -> Dict[str, Any]:
        """Flatten into the JSON-compatible record kept in the store."""
        m = self.measurements
        s = self.score
        return {
            "maxDepth": m.max_depth,
            "interactiveInView": m.interactive_in_view,
            "density": m.density,
            "fragmentation": m.fragmentation,
            "timestamp": self.captured_at_millis,
            "rawScore": s.raw_score,
            "label": s.label.value,
            "depthTerm": s.depth_term,
            "densityTerm": s.density_term,
            "fragmentTerm": s.fragment_term,
            "sourceUrl": self.source_url,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Snapshot:
        """
        Rebuild a snapshot from a stored record.

        Raises:
            KeyError, ValueError, TypeError: If the record is incomplete or malformed.
        """
        measurements = RawMeasurements(
            max_depth=int(record["maxDepth"]),
            interactive_in_view=int(record["interactiveInView"]),
            density=float(record["density"]),
            fragmentation=int(record["fragmentation"]),
        )
        score = ScoreResult(
            raw_score=float(record["rawScore"]),
            label=LoadLabel(record["label"]),
            depth_term=float(record["depthTerm"]),
            density_term=float(record["densityTerm"]),
            fragment_term=float(record["fragmentTerm"]),
        )
        return cls(
            measurements=measurements,
            score=score,
            source_url=str(record.get("sourceUrl", "")),
            captured_at_millis=int(record["timestamp"]),
        )

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["score"]["label"] = self.score.label.value
        return data


@dataclass(frozen=True)
class StoreChange:
    """A single key change delivered by a store's change notification."""

    key: str
    old_value: Any
    new_value: Any


@dataclass(frozen=True)
class ListenerHandle:
    """Opaque registration returned by ``HostEnvironment.add_listener``."""

    event: HostEvent
    handler_id: int


# ============================================================================
# Protocols
# ============================================================================


class DocumentTreeView(Protocol):
    """Read-only view over one rendering of the observed document."""

    @property
    def root(self) -> Optional[LayoutNode]: ...

    @property
    def viewport(self) -> Viewport: ...

    def children(self, element: LayoutNode) -> List[LayoutNode]: ...

    def rect(self, element: LayoutNode) -> Rect: ...

    def is_interactive(self, element: LayoutNode) -> bool: ...

    def iter_elements(self) -> Iterator[LayoutNode]: ...


class HostEnvironment(Protocol):
    """Capabilities the observing context needs from whatever renders the document."""

    @property
    def location(self) -> str: ...

    @property
    def ready_state(self) -> ReadyState: ...

    async def capture_view(self) -> DocumentTreeView: ...

    def add_listener(self, event: HostEvent, handler: Callable[[], None]) -> ListenerHandle: ...

    def remove_listener(self, handle: ListenerHandle) -> None: ...


ChangeListener = Callable[[List[StoreChange]], None]


class KeyValueStore(Protocol):
    """Shared key-value store with change notification."""

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]: ...

    async def set(self, items: Mapping[str, Any]) -> None: ...

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]: ...


class ManualTrigger(Protocol):
    """Anything that can run an immediate, non-debounced recomputation."""

    @property
    def location(self) -> str: ...

    def request_now(self) -> Awaitable[Optional[Snapshot]]: ...
