"""
Global auto-update: one interval for every enabled remote subscription.
"""
import asyncio
from typing import Optional

from loguru import logger

from subwatch.clients.base import BaseSubscriptionBackend
from subwatch.constants import SECONDS_PER_MINUTE
from subwatch.models.subscription import remote_ids
from subwatch.services.batch_refresher import BatchOutcome, BatchRefresher
from subwatch.services.refresher import RefreshMode
from subwatch.services.subscription_store import SubscriptionStore
from subwatch.services.timers import RecurringTimer, minutes_to_seconds


class GlobalScheduler:
    """Owns the single global refresh timer."""

    TIMER_NAME = "global-refresh"

    def __init__(
        self,
        store: SubscriptionStore,
        backend: BaseSubscriptionBackend,
        batch_refresher: BatchRefresher,
        seconds_per_minute: float = SECONDS_PER_MINUTE,
    ):
        self.store = store
        self.backend = backend
        self.batch_refresher = batch_refresher
        self.seconds_per_minute = seconds_per_minute
        self.interval_minutes = 0
        self._timer: Optional[RecurringTimer] = None

    @property
    def active(self) -> bool:
        return self._timer is not None and self._timer.active

    def configure(self, interval_minutes: Optional[int]):
        """Store the interval and re-arm; 0 or less disables auto-update."""
        self.interval_minutes = interval_minutes or 0
        self._rearm()

    def _rearm(self):
        self.stop()
        if self.interval_minutes <= 0:
            logger.info("Global auto-update disabled")
            return

        self._timer = RecurringTimer(
            self.TIMER_NAME,
            minutes_to_seconds(self.interval_minutes, self.seconds_per_minute),
            self.tick,
        )
        self._timer.start()
        logger.info(f"Global auto-update every {self.interval_minutes} min")

    async def fetch_interval(self) -> Optional[int]:
        """Read the interval from the settings store, or None when it is unreachable."""
        try:
            remote = await self.backend.fetch_settings()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed to fetch settings, global auto-update left unchanged: {e}")
            return None
        return remote.update_interval or 0

    async def tick(self) -> Optional[BatchOutcome]:
        ids = remote_ids(self.store.enabled_subset)
        if not ids:
            logger.debug("Global auto-update: no enabled remote subscriptions")
            return None

        outcome = await self.batch_refresher.refresh(ids, RefreshMode.SCHEDULED)
        logger.info(
            f"Global auto-update finished: {outcome.succeeded}/{outcome.total} updated"
            + (" (degraded)" if outcome.degraded else "")
        )
        return outcome

    def stop(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
