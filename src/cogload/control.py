"""
Control surface - the passive observer that displays the current snapshot.

``ControlSurface`` holds presentation state only (``PanelState``); drawing it
is left to whatever front end embeds it. It decides whether the stored
snapshot is valid for the active resource, asks the observing context for a
recomputation when it is not, and keeps itself in sync with snapshot and
preference writes made elsewhere.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from urllib.parse import urlparse

import structlog

from cogload.config.config import TriggerConfig
from cogload.errors import StoreError, UnsupportedResourceError, is_supported_resource
from cogload.protocols import LoadLabel, ManualTrigger, Snapshot
from cogload.sync.events import PreferenceChanged, SnapshotChanged
from cogload.sync.layer import Subscription, SynchronizationLayer

logger = structlog.get_logger(__name__)

UNSUPPORTED_ADVISORY = "This page can't be analyzed. Open an http, https or file page."
REFRESH_TEXT = "Refresh"
BUSY_TEXT = "Analyzing…"

# Overlay tints by band, as RGBA
HEAT_COLORS = {
    LoadLabel.HIGH: (255, 0, 0, 0.18),
    LoadLabel.MEDIUM: (255, 165, 0, 0.16),
    LoadLabel.LOW: (0, 128, 0, 0.12),
}


def heat_color(label: LoadLabel) -> str:
    """CSS color an overlay painter should use for a load band."""
    r, g, b, a = HEAT_COLORS[label]
    return f"rgba({r}, {g}, {b}, {a})"


def page_caption(url: Optional[str]) -> str:
    if not url:
        return "Analyzing: (unknown page)"
    parsed = urlparse(url)
    if parsed.netloc or parsed.path:
        return f"Analyzing: {parsed.netloc}{parsed.path}"
    return f"Analyzing: {url}"


@dataclass
class PanelState:
    """Everything a front end needs to draw the control surface."""

    page_caption: str = "Analyzing: (unknown page)"
    score_text: str = "No data"
    badge_text: str = "Open a supported page."
    badge_class: str = "badge"
    details: List[str] = field(default_factory=list)
    advisory: Optional[str] = None
    refresh_enabled: bool = False
    refresh_text: str = REFRESH_TEXT
    live_checked: bool = False

    def show_snapshot(self, snapshot: Optional[Snapshot]) -> None:
        if snapshot is None:
            self.score_text = "No data"
            self.badge_text = "Open a supported page."
            self.badge_class = "badge"
            self.details = []
            return

        m = snapshot.measurements
        label = snapshot.score.label
        self.score_text = f"{snapshot.score.raw_score * 100:.1f}"
        self.badge_text = label.value
        self.badge_class = f"badge {label.badge_class}"
        analyzed_at = datetime.fromtimestamp(snapshot.captured_at_millis / 1000)
        self.details = [
            f"Max DOM depth: {m.max_depth}",
            f"Interactive elements in view: {m.interactive_in_view}",
            f"Layout regions: {m.fragmentation}",
            f"Last analyzed: {analyzed_at.strftime('%H:%M:%S')}",
        ]


class ControlSurface:
    """Presenter for the current snapshot of one observed context."""

    def __init__(
        self,
        sync: SynchronizationLayer,
        trigger: ManualTrigger,
        config: Optional[TriggerConfig] = None,
    ) -> None:
        self.sync = sync
        self.trigger = trigger
        self.config = config or TriggerConfig()
        self.state = PanelState()
        self.tab_url: Optional[str] = None
        self._subscription: Optional[Subscription] = None

    @property
    def supported(self) -> bool:
        return is_supported_resource(self.tab_url)

    async def open(self, tab_url: Optional[str]) -> PanelState:
        """Initialize the panel for the active resource, replacing any earlier subscription."""
        self.close()
        self.tab_url = tab_url
        self.state = PanelState(page_caption=page_caption(tab_url))

        if not self.supported:
            self.state.advisory = UNSUPPORTED_ADVISORY
            self.state.refresh_enabled = False
            self.state.show_snapshot(None)
            return self.state

        self.state.refresh_enabled = True
        try:
            if await self.sync.is_stale(tab_url or ""):
                await self._recompute_and_reload()
            else:
                await self.reload()
            self.state.live_checked = await self.sync.live_on_scroll()
        except StoreError as e:
            logger.error("Control surface could not read the store", error=str(e))

        self._subscription = self.sync.subscribe(
            on_snapshot_changed=self._on_snapshot_changed,
            on_preference_changed=self._on_preference_changed,
        )
        return self.state

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    async def reload(self) -> None:
        """Re-read the current snapshot and reset the refresh button."""
        self.state.refresh_enabled = True
        self.state.refresh_text = REFRESH_TEXT
        self.state.show_snapshot(await self.sync.current_snapshot())

    async def refresh(self) -> bool:
        """Request an immediate recomputation; False if the resource is unsupported."""
        if not self.supported:
            return False
        try:
            await self._recompute_and_reload()
        except StoreError as e:
            logger.error("Refresh could not read the store", error=str(e))
        return True

    async def set_live(self, checked: bool) -> None:
        self.state.live_checked = checked
        await self.sync.set_live_on_scroll(checked)

    async def _recompute_and_reload(self) -> None:
        self.state.refresh_enabled = False
        self.state.refresh_text = BUSY_TEXT
        try:
            await self.trigger.request_now()
        except UnsupportedResourceError:
            self.state.advisory = UNSUPPORTED_ADVISORY
            self.state.refresh_text = REFRESH_TEXT
            self.state.show_snapshot(None)
            return
        await asyncio.sleep(self.config.settle_delay_ms / 1000.0)
        await self.reload()

    def _on_snapshot_changed(self, event: SnapshotChanged) -> None:
        self.state.show_snapshot(event.snapshot)

    def _on_preference_changed(self, event: PreferenceChanged) -> None:
        self.state.live_checked = event.live_on_scroll
