"""
Per-subscription auto-update timers.
"""
from typing import Dict, List, Optional

from loguru import logger

from subwatch.constants import SECONDS_PER_MINUTE
from subwatch.models.subscription import Subscription
from subwatch.services.refresher import SingleItemRefresher
from subwatch.services.subscription_store import SubscriptionStore
from subwatch.services.timers import RecurringTimer, TickCallback, minutes_to_seconds


class ItemScheduler:
    """
    One timer per enabled remote subscription that sets its own interval.

    Timers live in a table keyed by subscription id. ``rearm_all`` is the
    only way timers are created; it always cancels the whole table first.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        refresher: SingleItemRefresher,
        seconds_per_minute: float = SECONDS_PER_MINUTE,
    ):
        self.store = store
        self.refresher = refresher
        self.seconds_per_minute = seconds_per_minute
        self._timers: Dict[str, RecurringTimer] = {}

    @staticmethod
    def is_eligible(subscription: Subscription) -> bool:
        return (
            subscription.enabled
            and subscription.is_remote
            and (subscription.update_interval or 0) > 0
        )

    def rearm_all(self):
        self.teardown()
        for subscription in self.store.subscriptions:
            if not self.is_eligible(subscription):
                continue
            timer = RecurringTimer(
                f"item-refresh:{subscription.id}",
                minutes_to_seconds(subscription.update_interval, self.seconds_per_minute),
                self._tick_for(subscription.id),
            )
            timer.start()
            self._timers[subscription.id] = timer
        logger.debug(f"Per-subscription timers armed: {len(self._timers)}")

    def _tick_for(self, subscription_id: str) -> TickCallback:
        # Resolve by id at tick time so a replaced record is never refreshed stale
        async def tick():
            await self.refresher.scheduled_refresh(subscription_id)
        return tick

    def set_interval(self, subscription_id: str, minutes: Optional[int]) -> bool:
        subscription = self.store.get(subscription_id)
        if subscription is None:
            return False
        subscription.update_interval = minutes or None
        logger.info(f"Update interval for {subscription_id} set to {subscription.update_interval} min")
        self.rearm_all()
        return True

    def teardown(self):
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

    def tracked_ids(self) -> List[str]:
        return list(self._timers)

    def timer_for(self, subscription_id: str) -> Optional[RecurringTimer]:
        return self._timers.get(subscription_id)
