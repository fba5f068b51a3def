"""Tests for the asyncio timer service."""

from __future__ import annotations

import asyncio
import time

import pytest

from window_lock.timers import AsyncioTimer


def _in_ms(delay: float) -> int:
    return int((time.time() + delay) * 1000)


class TestAsyncioTimer:
    @pytest.mark.asyncio
    async def test_one_shot_fires_once(self):
        fired = []
        timer = AsyncioTimer(on_fire=fired.append)
        await timer.create("a", _in_ms(0.02))

        await asyncio.sleep(0.1)
        assert fired == ["a"]
        assert timer.scheduled() == {}

    @pytest.mark.asyncio
    async def test_past_time_fires_immediately(self):
        fired = []
        timer = AsyncioTimer(on_fire=fired.append)
        await timer.create("late", _in_ms(-5))
        await asyncio.sleep(0.01)
        assert fired == ["late"]

    @pytest.mark.asyncio
    async def test_periodic_rearms(self):
        fired = []
        timer = AsyncioTimer(on_fire=fired.append)
        first = _in_ms(0.01)
        await timer.create("p", first, period_ms=50)

        await asyncio.sleep(0.13)
        await timer.cancel_all()
        assert 2 <= fired.count("p") <= 3

    @pytest.mark.asyncio
    async def test_periodic_skips_missed_periods(self):
        fired = []
        timer = AsyncioTimer(on_fire=fired.append)
        # First occurrence ten periods in the past
        await timer.create("p", _in_ms(-10), period_ms=1000)
        await asyncio.sleep(0.01)

        assert fired == ["p"]
        next_ms = timer.scheduled()["p"]
        assert next_ms > time.time() * 1000
        await timer.cancel_all()

    @pytest.mark.asyncio
    async def test_create_replaces_same_name(self):
        fired = []
        timer = AsyncioTimer(on_fire=fired.append)
        await timer.create("a", _in_ms(0.02))
        await timer.create("a", _in_ms(0.04))
        assert len(timer.scheduled()) == 1

        await asyncio.sleep(0.1)
        assert fired == ["a"]

    @pytest.mark.asyncio
    async def test_cancel(self):
        fired = []
        timer = AsyncioTimer(on_fire=fired.append)
        await timer.create("a", _in_ms(0.02))
        assert await timer.cancel("a") is True
        assert await timer.cancel("a") is False

        await asyncio.sleep(0.05)
        assert fired == []

    @pytest.mark.asyncio
    async def test_cancel_all_counts(self):
        timer = AsyncioTimer(on_fire=lambda name: None)
        await timer.create("a", _in_ms(10))
        await timer.create("b", _in_ms(10), period_ms=1000)
        assert await timer.cancel_all() == 2
        assert await timer.cancel_all() == 0

    @pytest.mark.asyncio
    async def test_async_handler_is_awaited(self):
        done = asyncio.Event()

        async def handler(name: str) -> None:
            done.set()

        timer = AsyncioTimer(on_fire=handler)
        await timer.create("a", _in_ms(0.01))
        await asyncio.wait_for(done.wait(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_handler_error_does_not_stop_periodic(self):
        calls = []

        def handler(name: str) -> None:
            calls.append(name)
            raise RuntimeError("boom")

        timer = AsyncioTimer(on_fire=handler)
        await timer.create("p", _in_ms(0.01), period_ms=30)
        await asyncio.sleep(0.1)
        await timer.cancel_all()
        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_no_handler_is_harmless(self):
        timer = AsyncioTimer()
        await timer.create("a", _in_ms(0.01))
        await asyncio.sleep(0.03)
        assert timer.scheduled() == {}


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestWallClock:
    @pytest.mark.asyncio
    async def test_fires_when_wall_clock_jumps_past_due_time(self):
        """Suspend/resume: the loop clock lags, the wall clock does not."""
        clock = FakeClock()
        fired = []
        timer = AsyncioTimer(on_fire=fired.append, clock=clock, max_sleep=0.01)
        await timer.create("a", int((clock.now + 3600) * 1000), period_ms=24 * 3600 * 1000)

        await asyncio.sleep(0.03)
        assert fired == []

        clock.now += 7200
        await asyncio.sleep(0.05)
        assert fired == ["a"]
        assert timer.scheduled()["a"] == int((clock.now - 7200 + 3600 + 24 * 3600) * 1000)
        await timer.cancel_all()

    @pytest.mark.asyncio
    async def test_not_fired_before_wall_clock_due(self):
        clock = FakeClock()
        fired = []
        timer = AsyncioTimer(on_fire=fired.append, clock=clock, max_sleep=0.01)
        await timer.create("a", int((clock.now + 60) * 1000))

        await asyncio.sleep(0.05)
        assert fired == []
        assert "a" in timer.scheduled()
        await timer.cancel_all()


class TestAsyncHandlerErrors:
    @pytest.mark.asyncio
    async def test_failing_coroutine_is_logged(self, caplog):
        done = asyncio.Event()

        async def handler(name: str) -> None:
            done.set()
            raise RuntimeError("handler exploded")

        timer = AsyncioTimer(on_fire=handler)
        await timer.create("a", _in_ms(0.01))
        await asyncio.wait_for(done.wait(), timeout=1.0)
        await asyncio.sleep(0.01)

        assert "Async alarm handler failed" in caplog.text
        assert "handler exploded" in caplog.text
        assert timer._tasks == set()
