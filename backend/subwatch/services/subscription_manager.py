"""
Subscription manager: the collection plus everything that keeps it fresh.
"""
import asyncio
from typing import Any, Coroutine, Dict, Iterable, List, Optional, Set, Union

from loguru import logger

from subwatch.clients.base import BaseSubscriptionBackend
from subwatch.constants import SECONDS_PER_MINUTE, SUBSCRIPTIONS_PAGE_SIZE
from subwatch.models.notification import NotificationLevel
from subwatch.models.subscription import Subscription, normalize_subscription, remote_ids
from subwatch.services.batch_refresher import BatchOutcome, BatchRefresher
from subwatch.services.global_scheduler import GlobalScheduler
from subwatch.services.item_scheduler import ItemScheduler
from subwatch.services.refresher import (
    MarkDirty,
    Notify,
    RefreshMode,
    RefreshOutcome,
    SingleItemRefresher,
)
from subwatch.services.subscription_store import SubscriptionStore
from subwatch.services.timers import drain_inflight_ticks

RawSubscription = Union[Dict[str, Any], Subscription]


class SubscriptionManager:
    """
    Owns the subscription collection and coordinates its refreshes.

    All mutations run between awaits on the event loop, so no lock is needed
    around the collection. Running this on several threads would require
    serializing every call into a single owner.

    Timers are only armed between ``start()`` and ``stop()``; before that the
    manager can be seeded with ``initialize`` outside an event loop.
    """

    def __init__(
        self,
        backend: BaseSubscriptionBackend,
        notify: Notify,
        mark_dirty: MarkDirty,
        page_size: int = SUBSCRIPTIONS_PAGE_SIZE,
        seconds_per_minute: float = SECONDS_PER_MINUTE,
    ):
        self.backend = backend
        self.notify = notify
        self.mark_dirty = mark_dirty
        self.store = SubscriptionStore(page_size)
        self.refresher = SingleItemRefresher(self.store, backend, notify, mark_dirty)
        self.batch_refresher = BatchRefresher(self.store, backend, self.refresher, notify, mark_dirty)
        self.global_scheduler = GlobalScheduler(
            self.store, backend, self.batch_refresher, seconds_per_minute
        )
        self.item_scheduler = ItemScheduler(self.store, self.refresher, seconds_per_minute)
        self._background: Set[asyncio.Task] = set()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self):
        """Load the global interval and arm per-subscription timers."""
        self._running = True
        await self.reload_update_interval()
        self.item_scheduler.rearm_all()
        logger.info(
            f"Subscription manager started ({len(self.store)} subscriptions, "
            f"{len(self.item_scheduler.tracked_ids())} per-subscription timers)"
        )

    async def stop(self):
        """Cancel every timer, then wait for refreshes already in flight."""
        self._running = False
        self.global_scheduler.stop()
        self.item_scheduler.teardown()
        await self.wait_idle()
        await drain_inflight_ticks()
        logger.info("Subscription manager stopped")

    async def wait_idle(self):
        """Wait for fire-and-forget refreshes started by add/update."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def _spawn(self, coro: Coroutine, name: str):
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _rearm_items(self):
        if self._running:
            self.item_scheduler.rearm_all()

    # -------------------------------------------------------------------------
    # Collection operations
    # -------------------------------------------------------------------------

    def initialize(self, raw_subscriptions: Optional[Iterable[RawSubscription]]):
        """
        Replace the collection with normalized records from the host.

        Never triggers a refresh. Invalid entries are logged and dropped.
        """
        records: List[Subscription] = []
        taken: Set[str] = set()
        for raw in raw_subscriptions or []:
            try:
                subscription = normalize_subscription(raw, taken)
            except ValueError as e:
                logger.error(f"Skipping invalid subscription entry: {e}")
                continue
            taken.add(subscription.id)
            records.append(subscription)

        self.store.replace_all(records)
        self._rearm_items()
        logger.info(f"Initialized {len(records)} subscriptions")

    def add(self, raw: RawSubscription) -> Subscription:
        """Insert at the front, go to page 1 and refresh the new record."""
        subscription = normalize_subscription(raw, self.store.ids())
        self.store.prepend([subscription])
        self.store.reset_page()
        self._spawn(self.refresher.user_refresh(subscription.id), name=f"refresh:{subscription.id}")
        self.mark_dirty()
        self._rearm_items()
        logger.info(f"Added subscription {subscription.id}")
        return subscription

    async def add_bulk(self, raws: Iterable[RawSubscription]) -> BatchOutcome:
        """Insert records at the front as one block, then batch-refresh the remote ones."""
        taken = self.store.ids()
        added: List[Subscription] = []
        for raw in raws:
            subscription = normalize_subscription(raw, taken)
            taken.add(subscription.id)
            added.append(subscription)

        self.store.prepend(added)
        self.mark_dirty()
        self._rearm_items()
        logger.info(f"Bulk-imported {len(added)} subscriptions")

        ids = remote_ids(added)
        if not ids:
            self.notify("Bulk import complete!", NotificationLevel.SUCCESS)
            return BatchOutcome()

        self.notify(f"Updating {len(ids)} subscriptions...", NotificationLevel.INFO)
        return await self.batch_refresher.refresh(ids, RefreshMode.USER)

    def update(self, raw: RawSubscription) -> Optional[Subscription]:
        """
        Replace the record with the same id.

        Node count and quota are carried over from the stored record. A URL
        change resets the node count and refreshes the record.
        """
        data = raw.to_wire() if isinstance(raw, Subscription) else dict(raw)
        existing = self.store.get(data.get("id") or "")
        if existing is None:
            logger.debug(f"Update ignored, unknown subscription id {data.get('id')}")
            return None

        updated = normalize_subscription(data)
        updated.node_count = existing.node_count
        updated.user_info = existing.user_info
        updated.is_updating = existing.is_updating

        url_changed = updated.url != existing.url
        if url_changed:
            updated.node_count = 0

        self.store.replace(updated)
        if url_changed:
            self._spawn(self.refresher.user_refresh(updated.id), name=f"refresh:{updated.id}")
        self.mark_dirty()

        if self._schedule_key(existing) != self._schedule_key(updated):
            self._rearm_items()
        return updated

    @staticmethod
    def _schedule_key(subscription: Subscription):
        return ItemScheduler.is_eligible(subscription), subscription.update_interval

    def delete(self, subscription_id: str) -> bool:
        removed = self.store.remove(subscription_id)
        if removed is None:
            return False
        self.mark_dirty()
        self._rearm_items()
        logger.info(f"Deleted subscription {subscription_id}")
        return True

    def delete_all(self):
        count = len(self.store)
        self.item_scheduler.teardown()
        self.store.clear()
        self.mark_dirty()
        logger.info(f"Deleted all {count} subscriptions")

    # -------------------------------------------------------------------------
    # Refresh and scheduling
    # -------------------------------------------------------------------------

    async def refresh(self, subscription_id: str) -> RefreshOutcome:
        """On-demand refresh of one record."""
        return await self.refresher.user_refresh(subscription_id)

    def set_update_interval(self, minutes: Optional[int]):
        """Change the global auto-update interval (0 disables it)."""
        if not self._running:
            self.global_scheduler.interval_minutes = minutes or 0
            return
        self.global_scheduler.configure(minutes)

    async def reload_update_interval(self) -> bool:
        """Read the global interval from the settings store again."""
        minutes = await self.global_scheduler.fetch_interval()
        if minutes is None:
            return False
        self.set_update_interval(minutes)
        return True

    def set_subscription_interval(self, subscription_id: str, minutes: Optional[int]) -> bool:
        """Change one record's own interval and rebuild all per-subscription timers."""
        subscription = self.store.get(subscription_id)
        if subscription is None:
            return False
        if not self._running:
            subscription.update_interval = minutes or None
        else:
            self.item_scheduler.set_interval(subscription_id, minutes)
        self.mark_dirty()
        return True

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    @property
    def subscriptions(self) -> List[Subscription]:
        return self.store.subscriptions

    def get(self, subscription_id: str) -> Optional[Subscription]:
        return self.store.get(subscription_id)

    @property
    def current_page(self) -> int:
        return self.store.current_page

    @property
    def total_pages(self) -> int:
        return self.store.total_pages

    @property
    def paginated_subscriptions(self) -> List[Subscription]:
        return self.store.paginated_slice()

    @property
    def enabled_count(self) -> int:
        return self.store.enabled_count

    @property
    def remaining_quota(self) -> float:
        return self.store.aggregate_remaining_quota

    def change_page(self, page: int) -> bool:
        return self.store.change_page(page)
