"""Tests for the single-slot debounce timer."""

import asyncio

import pytest

from cogload.trigger.debounce import Debouncer
from tests.helpers.fake_clock import FakeScheduler


@pytest.mark.unit
class TestDebouncer:
    """Tests for Debouncer."""

    def test_single_trigger_fires_after_delay(self):
        clock = FakeScheduler()
        calls = []
        debouncer = Debouncer(0.5, lambda: calls.append(clock.now), clock)

        debouncer.trigger()
        assert debouncer.pending
        clock.advance(0.499)
        assert calls == []
        clock.advance(0.001)
        assert calls == [pytest.approx(0.5)]
        assert not debouncer.pending

    def test_burst_collapses_to_one_trailing_call(self):
        clock = FakeScheduler()
        calls = []
        debouncer = Debouncer(0.8, lambda: calls.append(clock.now), clock)

        for _ in range(10):
            debouncer.trigger()
            clock.advance(0.1)
        assert calls == []

        clock.advance(0.8)
        assert calls == [pytest.approx(1.7)]

    def test_gap_longer_than_delay_fires_twice(self):
        clock = FakeScheduler()
        calls = []
        debouncer = Debouncer(0.5, lambda: calls.append(clock.now), clock)

        debouncer.trigger()
        clock.advance(0.6)
        debouncer.trigger()
        clock.advance(0.6)
        assert len(calls) == 2

    def test_cancel_drops_pending_call(self):
        clock = FakeScheduler()
        calls = []
        debouncer = Debouncer(0.5, lambda: calls.append(1), clock)

        debouncer.trigger()
        debouncer.cancel()
        debouncer.cancel()
        clock.advance(1)
        assert calls == []
        assert clock.pending == 0

    def test_at_most_one_timer_outstanding(self):
        clock = FakeScheduler()
        debouncer = Debouncer(0.5, lambda: None, clock)
        for _ in range(5):
            debouncer.trigger()
        assert clock.pending == 1

    def test_independent_debouncers_do_not_interfere(self):
        clock = FakeScheduler()
        calls = []
        a = Debouncer(0.8, lambda: calls.append("a"), clock)
        b = Debouncer(0.5, lambda: calls.append("b"), clock)

        a.trigger()
        b.trigger()
        clock.advance(1)
        assert calls == ["b", "a"]

    @pytest.mark.asyncio
    async def test_uses_running_loop_without_scheduler(self):
        fired = asyncio.Event()
        debouncer = Debouncer(0.01, fired.set, name="loop")
        debouncer.trigger()
        debouncer.trigger()
        await asyncio.wait_for(fired.wait(), timeout=1)
        assert not debouncer.pending
