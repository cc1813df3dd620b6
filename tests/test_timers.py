import asyncio

import pytest

from subwatch.services.timers import RecurringTimer, drain_inflight_ticks, minutes_to_seconds


def test_minutes_to_seconds():
    assert minutes_to_seconds(5) == 300
    assert minutes_to_seconds(2, seconds_per_minute=0.5) == 1.0


def test_interval_must_be_positive():
    async def noop():
        pass

    with pytest.raises(ValueError):
        RecurringTimer("bad", 0, noop)


def test_timer_ticks_until_cancelled():
    calls = []

    async def scenario():
        async def tick():
            calls.append(1)

        timer = RecurringTimer("t", 0.01, tick)
        timer.start()
        await asyncio.sleep(0.055)
        timer.cancel()
        await drain_inflight_ticks()
        seen = len(calls)
        await asyncio.sleep(0.03)
        return timer, seen

    timer, seen = asyncio.run(scenario())
    assert seen >= 2
    assert len(calls) == seen
    assert not timer.active


def test_first_tick_waits_one_interval():
    calls = []

    async def scenario():
        async def tick():
            calls.append(1)

        timer = RecurringTimer("slow", 10, tick)
        timer.start()
        await asyncio.sleep(0.02)
        timer.cancel()

    asyncio.run(scenario())
    assert calls == []


def test_errors_do_not_stop_the_timer():
    calls = []

    async def scenario():
        async def tick():
            calls.append(1)
            raise RuntimeError("bad tick")

        timer = RecurringTimer("failing", 0.01, tick)
        timer.start()
        await asyncio.sleep(0.055)
        active = timer.active
        timer.cancel()
        return active

    assert asyncio.run(scenario()) is True
    assert len(calls) >= 2


def test_cancel_lets_inflight_tick_finish():
    finished = []

    async def scenario():
        release = asyncio.Event()
        started = asyncio.Event()

        async def tick():
            started.set()
            await release.wait()
            finished.append(1)

        timer = RecurringTimer("inflight", 0.01, tick)
        timer.start()
        await started.wait()
        timer.cancel()
        release.set()
        await drain_inflight_ticks()

    asyncio.run(scenario())
    assert finished == [1]
