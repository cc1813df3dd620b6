"""
Recurring timers used by the global and per-item schedulers.

Refresh intervals are configured in minutes. ``minutes_to_seconds`` is the
only place that converts them.
"""
import asyncio
from typing import Awaitable, Callable, Optional, Set
from loguru import logger

from subwatch.constants import SECONDS_PER_MINUTE
from subwatch.middleware.correlation import correlation_scope

TickCallback = Callable[[], Awaitable[object]]

# Ticks that are still running; a cancelled timer does not abort them
_inflight_ticks: Set[asyncio.Task] = set()


def minutes_to_seconds(minutes: float, seconds_per_minute: float = SECONDS_PER_MINUTE) -> float:
    """Convert a refresh interval in minutes to timer seconds."""
    return float(minutes) * seconds_per_minute


async def drain_inflight_ticks():
    """Wait for ticks that were started before their timer was cancelled."""
    if _inflight_ticks:
        await asyncio.gather(*list(_inflight_ticks), return_exceptions=True)


class RecurringTimer:
    """
    Calls ``callback`` every ``interval_seconds`` until cancelled.

    The first call happens one interval after ``start()``. Ticks of the same
    timer never overlap: the next sleep begins after the callback returns.
    Callback errors are logged and the timer keeps running.
    """

    def __init__(self, name: str, interval_seconds: float, callback: TickCallback):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """Start ticking. Must be called from inside the running event loop."""
        if self.active:
            return
        self._task = asyncio.create_task(self._run(), name=f"timer:{self.name}")

    def cancel(self):
        """Prevent future ticks. A tick already in progress runs to completion."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.ticks += 1
            tick = asyncio.create_task(self._fire(), name=f"tick:{self.name}")
            _inflight_ticks.add(tick)
            tick.add_done_callback(_inflight_ticks.discard)
            # Shielded so that cancel() only stops the loop, not the refresh
            await asyncio.shield(tick)

    async def _fire(self):
        with correlation_scope(self.name):
            try:
                await self.callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in timer '{self.name}': {type(e).__name__}: {e}")

    def __repr__(self) -> str:
        return f"RecurringTimer(name={self.name!r}, interval_seconds={self.interval_seconds}, active={self.active})"
