"""
Synchronization Layer - publishes snapshots to the shared store and turns the
store's change stream into typed events for observers.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import structlog

from cogload.config.config import StoreKeys
from cogload.errors import StoreError
from cogload.observability import increment
from cogload.protocols import KeyValueStore, Snapshot, StoreChange
from cogload.sync.events import (
    PreferenceChanged,
    PreferenceHandler,
    SnapshotChanged,
    SnapshotHandler,
    translate_changes,
)

logger = structlog.get_logger(__name__)


class Subscription:
    """Handle for one ``subscribe`` call; ``cancel`` stops further notifications."""

    def __init__(self, unsubscribe: Callable[[], None]) -> None:
        self._unsubscribe: Optional[Callable[[], None]] = unsubscribe

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def cancel(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


class SynchronizationLayer:
    """
    Keeps any number of observers consistent with the current snapshot.

    The publisher never reads back its own write; completion is observable
    only through the store's change notification.
    """

    def __init__(self, store: KeyValueStore, keys: Optional[StoreKeys] = None) -> None:
        self.store = store
        self.keys = keys or StoreKeys()

    async def _get(self, *keys: str) -> Dict[str, Any]:
        try:
            return await self.store.get(keys)
        except StoreError:
            increment("store_errors", labels={"operation": "read"})
            raise

    async def _set(self, items: Dict[str, Any]) -> None:
        try:
            await self.store.set(items)
        except StoreError:
            increment("store_errors", labels={"operation": "write"})
            raise

    async def publish(self, snapshot: Snapshot) -> None:
        """
        Replace the current snapshot and record its resource in one write.

        Raises:
            StoreError: If the store rejects the write. The previous snapshot stays current.
        """
        await self._set(
            {
                self.keys.snapshot: snapshot.to_record(),
                self.keys.resource: snapshot.source_url,
            }
        )
        logger.debug("Snapshot published", resource=snapshot.source_url, score=snapshot.score.raw_score)

    def subscribe(
        self,
        on_snapshot_changed: Optional[SnapshotHandler] = None,
        on_preference_changed: Optional[PreferenceHandler] = None,
    ) -> Subscription:
        """Register typed handlers for snapshot and preference writes from any context."""

        def listener(changes: List[StoreChange]) -> None:
            for event in translate_changes(changes, self.keys):
                if isinstance(event, SnapshotChanged) and on_snapshot_changed is not None:
                    on_snapshot_changed(event)
                elif isinstance(event, PreferenceChanged) and on_preference_changed is not None:
                    on_preference_changed(event)

        return Subscription(self.store.subscribe(listener))

    async def current_snapshot(self) -> Optional[Snapshot]:
        record = (await self._get(self.keys.snapshot)).get(self.keys.snapshot)
        if record is None:
            return None
        try:
            return Snapshot.from_record(record)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Stored snapshot is malformed", error=str(e))
            return None

    async def last_observed_resource(self) -> Optional[str]:
        return (await self._get(self.keys.resource)).get(self.keys.resource)

    async def live_on_scroll(self) -> bool:
        return bool((await self._get(self.keys.live_on_scroll)).get(self.keys.live_on_scroll, False))

    async def set_live_on_scroll(self, enabled: bool) -> None:
        await self._set({self.keys.live_on_scroll: bool(enabled)})

    async def is_stale(self, active_resource: str) -> bool:
        """True if no snapshot exists yet or it was taken for a different resource."""
        stored = await self._get(self.keys.resource, self.keys.snapshot)
        if stored.get(self.keys.snapshot) is None:
            return True
        return stored.get(self.keys.resource) != active_resource
