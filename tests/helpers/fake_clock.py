"""
Manually advanced clock implementing the debouncer's ``Scheduler`` protocol.

Timers only fire inside ``advance``, so debounce windows can be tested
without sleeping.
"""

from __future__ import annotations

import itertools
from typing import Any, Callable, List, Tuple


class FakeTimer:
    def __init__(self, when: float, seq: int, callback: Callable[..., Any], args: Tuple[Any, ...]) -> None:
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    def __init__(self) -> None:
        self.now = 0.0
        self._seq = itertools.count()
        self._timers: List[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeTimer:
        timer = FakeTimer(self.now + delay, next(self._seq), callback, args)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due timers in time order. Returns how many fired."""
        target = self.now + seconds
        fired = 0
        while True:
            due = [t for t in self._timers if not t.cancelled and t.when <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: (t.when, t.seq))
            self._timers.remove(timer)
            self.now = max(self.now, timer.when)
            timer.callback(*timer.args)
            fired += 1
        self._timers = [t for t in self._timers if not t.cancelled]
        self.now = target
        return fired

    def advance_ms(self, millis: float) -> int:
        return self.advance(millis / 1000.0)
