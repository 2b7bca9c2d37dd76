"""Single-slot trailing debounce timer on top of the event loop."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """The subset of ``asyncio.AbstractEventLoop`` a debouncer needs."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


class Debouncer:
    """
    Collapses a burst of triggers into one trailing call.

    Every ``trigger`` replaces the pending timer, so the callback runs once,
    ``delay`` seconds after the last trigger of the burst.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        scheduler: Optional[Scheduler] = None,
        name: str = "",
    ) -> None:
        self.delay = delay
        self.callback = callback
        self.name = name
        self._scheduler = scheduler
        self._handle: Optional[TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        self.cancel()
        scheduler = self._scheduler or asyncio.get_running_loop()
        self._handle = scheduler.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.callback()
