"""
In-process host environment.

``SimulatedHost`` plays the part of the browser tab for one observed document:
it holds the current layout, reports readiness, and delivers resize, scroll
and ready events to registered listeners. Replaying captured layouts and the
test suite both drive the pipeline through it.
"""

from __future__ import annotations

import itertools
from typing import Callable, Dict, List, Optional, Tuple

import structlog

from cogload.metrics.tree import LayoutDocument, LayoutTreeView
from cogload.protocols import HostEvent, ListenerHandle, ReadyState

logger = structlog.get_logger(__name__)


class ListenerRegistry:
    """Listener bookkeeping shared by host implementations."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._listeners: Dict[int, Tuple[HostEvent, Callable[[], None]]] = {}

    def add_listener(self, event: HostEvent, handler: Callable[[], None]) -> ListenerHandle:
        handle = ListenerHandle(event, next(self._ids))
        self._listeners[handle.handler_id] = (event, handler)
        return handle

    def remove_listener(self, handle: ListenerHandle) -> None:
        self._listeners.pop(handle.handler_id, None)

    def listener_count(self, event: HostEvent) -> int:
        return sum(1 for registered, _ in self._listeners.values() if registered is event)

    def dispatch(self, event: HostEvent) -> int:
        """Deliver an event to its current listeners; returns how many were called."""
        handlers: List[Callable[[], None]] = [h for registered, h in self._listeners.values() if registered is event]
        for handler in handlers:
            handler()
        return len(handlers)


class SimulatedHost(ListenerRegistry):
    """``HostEnvironment`` backed by a ``LayoutDocument`` held in memory."""

    def __init__(self, document: LayoutDocument, location: Optional[str] = None) -> None:
        super().__init__()
        self._document = document
        self._location = location if location is not None else document.url
        self._ready_state = document.ready_state
        self.captures = 0

    @property
    def location(self) -> str:
        return self._location

    @property
    def ready_state(self) -> ReadyState:
        return self._ready_state

    @property
    def document(self) -> LayoutDocument:
        return self._document

    async def capture_view(self) -> LayoutTreeView:
        self.captures += 1
        return LayoutTreeView(self._document)

    def set_ready_state(self, state: ReadyState) -> None:
        """Advance readiness; the first transition out of ``loading`` fires the ready event."""
        was_ready = self._ready_state.is_ready
        self._ready_state = state
        if state.is_ready and not was_ready:
            self.dispatch(HostEvent.READY)

    def navigate(self, document: LayoutDocument, location: Optional[str] = None) -> None:
        """Swap in a new document, as after a navigation or a DOM mutation."""
        self._document = document
        self._location = location if location is not None else document.url
        logger.debug("Host document replaced", location=self._location)
