"""Typed synchronization events derived from raw store changes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Union

import structlog

from cogload.config.config import StoreKeys
from cogload.protocols import Snapshot, StoreChange

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SnapshotChanged:
    """A new current snapshot was written. ``snapshot`` is None if the key was cleared."""

    snapshot: Optional[Snapshot]


@dataclass(frozen=True)
class PreferenceChanged:
    """The live-on-scroll preference was written."""

    live_on_scroll: bool


SyncEvent = Union[SnapshotChanged, PreferenceChanged]

SnapshotHandler = Callable[[SnapshotChanged], None]
PreferenceHandler = Callable[[PreferenceChanged], None]


def translate_changes(changes: List[StoreChange], keys: StoreKeys) -> List[SyncEvent]:
    """
    Map one write's raw changes to typed events, in key order of the write.

    Keys other than the snapshot and preference keys produce no event. A
    malformed snapshot record is logged and dropped.
    """
    events: List[SyncEvent] = []
    for change in changes:
        if change.key == keys.snapshot:
            if change.new_value is None:
                events.append(SnapshotChanged(None))
                continue
            try:
                events.append(SnapshotChanged(Snapshot.from_record(change.new_value)))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Ignoring malformed snapshot record", error=str(e))
        elif change.key == keys.live_on_scroll:
            events.append(PreferenceChanged(bool(change.new_value)))
    return events
