"""
Recompute Trigger Coordinator - decides when to run extraction and scoring.

One coordinator exists per observing context. It owns its host listener
handles, its live-mode state and one debounce timer per trigger source:

- initial: one run ``initial_delay_ms`` after each document becomes ready
- resize: trailing run ``resize_debounce_ms`` after the last resize
- scroll: trailing run ``scroll_debounce_ms`` after the last scroll, only
  while live mode is enabled
- manual: immediate run on request, regardless of live mode

Sources never cancel each other's timers. Runs from different sources may
land back-to-back; the store keeps whichever publish lands last.
"""

from __future__ import annotations

import asyncio
import time
from collections import Counter
from typing import Dict, Optional, Set
from uuid import uuid4

import structlog
from structlog.contextvars import bound_contextvars

from cogload.config.config import TriggerConfig
from cogload.errors import StoreError, UnsupportedResourceError, is_supported_resource
from cogload.metrics.extractor import TreeMetricsExtractor
from cogload.metrics.scoring import LoadScoringModel
from cogload.metrics.snapshot import assemble_snapshot
from cogload.observability import histogram, increment
from cogload.protocols import (
    DocumentTreeView,
    HostEnvironment,
    HostEvent,
    ListenerHandle,
    Snapshot,
    TriggerSource,
)
from cogload.sync.events import PreferenceChanged
from cogload.sync.layer import Subscription, SynchronizationLayer
from cogload.trigger.debounce import Debouncer, Scheduler

logger = structlog.get_logger(__name__)


class RecomputeCoordinator:
    """Event-driven recomputation for one observed document."""

    def __init__(
        self,
        host: HostEnvironment,
        sync: SynchronizationLayer,
        extractor: Optional[TreeMetricsExtractor] = None,
        scorer: Optional[LoadScoringModel] = None,
        config: Optional[TriggerConfig] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.host = host
        self.sync = sync
        self.extractor = extractor or TreeMetricsExtractor()
        self.scorer = scorer or LoadScoringModel()
        self.config = config or TriggerConfig()
        self.observer_id = uuid4().hex[:8]

        self._debouncers: Dict[TriggerSource, Debouncer] = {
            source: Debouncer(delay_ms / 1000.0, self._make_runner(source), scheduler, name=source.value)
            for source, delay_ms in (
                (TriggerSource.INITIAL, self.config.initial_delay_ms),
                (TriggerSource.RESIZE, self.config.resize_debounce_ms),
                (TriggerSource.SCROLL, self.config.scroll_debounce_ms),
            )
        }
        self._ready_handle: Optional[ListenerHandle] = None
        self._resize_handle: Optional[ListenerHandle] = None
        self._scroll_handle: Optional[ListenerHandle] = None
        self._subscription: Optional[Subscription] = None
        self._tasks: Set[asyncio.Task[Optional[Snapshot]]] = set()

        self.started = False
        self.completed: Counter[TriggerSource] = Counter()
        self.last_snapshot: Optional[Snapshot] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def location(self) -> str:
        return self.host.location

    @property
    def live_enabled(self) -> bool:
        return self._scroll_handle is not None

    def debouncer(self, source: TriggerSource) -> Debouncer:
        return self._debouncers[source]

    async def start(self) -> None:
        """Install listeners, apply the stored live preference and arm the initial run."""
        if self.started:
            return
        self.started = True

        # Subscribe before reading so a preference write in between is not lost
        self._subscription = self.sync.subscribe(on_preference_changed=self._on_preference_changed)
        self._resize_handle = self.host.add_listener(HostEvent.RESIZE, self.on_resize)

        try:
            live = await self.sync.live_on_scroll()
        except StoreError as e:
            logger.warning("Could not read live preference, assuming off", error=str(e))
            live = False
        if live:
            self.enable_live()
        else:
            self.disable_live()

        # Every document the host loads gets its own initial run
        self._ready_handle = self.host.add_listener(HostEvent.READY, self._on_ready)
        if self.host.ready_state.is_ready:
            self._debouncers[TriggerSource.INITIAL].trigger()

        logger.info(
            "Coordinator started",
            observer_id=self.observer_id,
            resource=self.location,
            live=self.live_enabled,
            ready_state=self.host.ready_state.value,
        )

    async def stop(self) -> None:
        """Remove listeners and pending timers, then wait for in-flight runs to finish."""
        for attr in ("_ready_handle", "_resize_handle", "_scroll_handle"):
            handle = getattr(self, attr)
            if handle is not None:
                self.host.remove_listener(handle)
                setattr(self, attr, None)
        for debouncer in self._debouncers.values():
            debouncer.cancel()
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        await self.wait_idle()
        self.started = False
        logger.info("Coordinator stopped", observer_id=self.observer_id)

    async def wait_idle(self) -> None:
        """Wait until every timer-started recomputation has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Trigger sources
    # ------------------------------------------------------------------

    def _on_ready(self) -> None:
        logger.debug("Document ready", observer_id=self.observer_id, resource=self.location)
        self._debouncers[TriggerSource.INITIAL].trigger()

    def on_resize(self) -> None:
        self._debouncers[TriggerSource.RESIZE].trigger()

    def on_scroll(self) -> None:
        if not self.live_enabled:
            return
        self._debouncers[TriggerSource.SCROLL].trigger()

    def enable_live(self) -> None:
        """Register the scroll listener so scrolling arms the scroll timer."""
        if self._scroll_handle is None:
            self._scroll_handle = self.host.add_listener(HostEvent.SCROLL, self.on_scroll)
            logger.debug("Live-on-scroll enabled", observer_id=self.observer_id)

    def disable_live(self) -> None:
        """
        Deregister the scroll listener.

        A scroll timer that is already pending may still fire once; no new
        scroll timers are armed afterwards.
        """
        if self._scroll_handle is not None:
            self.host.remove_listener(self._scroll_handle)
            self._scroll_handle = None
            logger.debug("Live-on-scroll disabled", observer_id=self.observer_id)

    def _on_preference_changed(self, event: PreferenceChanged) -> None:
        if event.live_on_scroll:
            self.enable_live()
        else:
            self.disable_live()

    async def request_now(self) -> Optional[Snapshot]:
        """
        Recompute immediately, bypassing every debounce timer and the live setting.

        Raises:
            UnsupportedResourceError: If the observed resource is not http, https or file.
        """
        if not is_supported_resource(self.location):
            increment("refused_requests")
            logger.info("Manual recompute refused", resource=self.location)
            raise UnsupportedResourceError(self.location)
        return await self._recompute(TriggerSource.MANUAL)

    # ------------------------------------------------------------------
    # Recomputation
    # ------------------------------------------------------------------

    def _make_runner(self, source: TriggerSource):
        def run() -> None:
            task = asyncio.get_running_loop().create_task(self._recompute(source))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        return run

    def compute(self, view: DocumentTreeView, source_url: str) -> Snapshot:
        """Extract, score and assemble synchronously, within one scheduling turn."""
        measurements = self.extractor.extract(view)
        score = self.scorer.score(measurements)
        return assemble_snapshot(measurements, score, source_url)

    async def _recompute(self, source: TriggerSource) -> Optional[Snapshot]:
        location = self.location
        with bound_contextvars(observer_id=self.observer_id, resource=location):
            if not is_supported_resource(location):
                increment("refused_requests")
                logger.debug("Skipping recompute for unsupported resource", source=source.value)
                return None

            try:
                view = await self.host.capture_view()
            except Exception as e:
                logger.error("Could not capture document view", source=source.value, error=str(e))
                return None

            started = time.perf_counter()
            snapshot = self.compute(view, location)
            histogram("recompute_duration_seconds", time.perf_counter() - started)

            try:
                await self.sync.publish(snapshot)
            except StoreError as e:
                logger.error("Snapshot publish failed, keeping previous snapshot", source=source.value, error=str(e))
                return None

            self.completed[source] += 1
            self.last_snapshot = snapshot
            increment("recomputations", labels={"source": source.value})
            histogram("load_score", snapshot.score.raw_score)
            logger.info(
                "Recomputed cognitive load",
                source=source.value,
                score=round(snapshot.score.raw_score, 4),
                label=snapshot.score.label.value,
            )
            return snapshot
