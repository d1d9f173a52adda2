"""Tests for the single-slot deadline scheduler."""

import asyncio
import time

import pytest

from memeparty.game.timers import TimerScheduler


@pytest.fixture
async def timers():
    scheduler = TimerScheduler()
    yield scheduler
    scheduler.cancel_all()


class TestTimerScheduler:
    """Tests for TimerScheduler."""

    @pytest.mark.asyncio
    async def test_fires_after_delay(self, timers: TimerScheduler) -> None:
        fired = asyncio.Event()

        async def callback() -> None:
            fired.set()

        timers.arm("lobby", 0.01, callback)
        await asyncio.wait_for(fired.wait(), timeout=1)

        assert not timers.is_pending("lobby")

    @pytest.mark.asyncio
    async def test_arm_returns_deadline(self, timers: TimerScheduler) -> None:
        async def callback() -> None:
            pass

        before = time.time()
        deadline = timers.arm("lobby", 30, callback)

        assert before + 30 <= deadline <= time.time() + 30
        assert timers.deadline("lobby") == deadline

    @pytest.mark.asyncio
    async def test_rearm_replaces_pending(self, timers: TimerScheduler) -> None:
        """Only the most recently armed callback for a key runs."""
        calls: list[str] = []

        async def first() -> None:
            calls.append("first")

        async def second() -> None:
            calls.append("second")

        timers.arm("lobby", 0.01, first)
        timers.arm("lobby", 0.02, second)
        await asyncio.sleep(0.1)

        assert calls == ["second"]

    @pytest.mark.asyncio
    async def test_cancel(self, timers: TimerScheduler) -> None:
        calls: list[str] = []

        async def callback() -> None:
            calls.append("fired")

        timers.arm("lobby", 0.01, callback)
        assert timers.cancel("lobby")
        assert not timers.cancel("lobby")
        await asyncio.sleep(0.05)

        assert calls == []

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, timers: TimerScheduler) -> None:
        calls: list[str] = []

        async def record(name: str) -> None:
            calls.append(name)

        timers.arm("a", 0.01, lambda: record("a"))
        timers.arm("b", 0.01, lambda: record("b"))
        timers.cancel("a")
        await asyncio.sleep(0.05)

        assert calls == ["b"]

    @pytest.mark.asyncio
    async def test_fire_runs_now(self, timers: TimerScheduler) -> None:
        calls: list[str] = []

        async def callback() -> None:
            calls.append("fired")

        timers.arm("lobby", 60, callback)

        assert await timers.fire("lobby")
        assert calls == ["fired"]
        assert not timers.is_pending("lobby")
        assert not await timers.fire("lobby")

    @pytest.mark.asyncio
    async def test_callback_can_rearm_same_key(self, timers: TimerScheduler) -> None:
        """A firing timer is out of its slot, so re-arming does not cancel it."""
        calls: list[int] = []
        done = asyncio.Event()

        async def callback() -> None:
            calls.append(len(calls))
            if len(calls) < 3:
                timers.arm("lobby", 0.01, callback)
            else:
                done.set()

        timers.arm("lobby", 0.01, callback)
        await asyncio.wait_for(done.wait(), timeout=1)

        assert calls == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_failing_callback_is_contained(self, timers: TimerScheduler) -> None:
        async def boom() -> None:
            raise RuntimeError("boom")

        timers.arm("lobby", 60, boom)

        assert await timers.fire("lobby")
        assert not timers.is_pending("lobby")
