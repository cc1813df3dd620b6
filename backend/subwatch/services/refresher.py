"""
Single-subscription refresh against the backend's node count endpoint.
"""
import asyncio
from enum import Enum
from typing import Callable, Dict

from loguru import logger

from subwatch.clients.base import BaseSubscriptionBackend
from subwatch.models.notification import NotificationLevel
from subwatch.models.subscription import Subscription
from subwatch.services.subscription_store import SubscriptionStore
from subwatch.utils.formatting import format_display_name

Notify = Callable[[str, NotificationLevel], None]
MarkDirty = Callable[[], None]


class RefreshMode(str, Enum):
    """
    Who asked for a refresh, which decides the side effects:

    SILENT     initial/background load: no busy flag, no messages, not dirty
    USER       on-demand: busy flag, success and failure messages, dirty
    SCHEDULED  timer tick: busy flag, success message, dirty; failures logged
    """
    SILENT = "silent"
    USER = "user"
    SCHEDULED = "scheduled"


class RefreshOutcome(str, Enum):
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SingleItemRefresher:
    """Refreshes one record's node count and quota usage."""

    def __init__(
        self,
        store: SubscriptionStore,
        backend: BaseSubscriptionBackend,
        notify: Notify,
        mark_dirty: MarkDirty,
    ):
        self.store = store
        self.backend = backend
        self.notify = notify
        self.mark_dirty = mark_dirty
        # Refreshes in flight per id; the busy flag clears when the last one ends
        self._inflight: Dict[str, int] = {}

    async def silent_refresh(self, subscription_id: str) -> RefreshOutcome:
        return await self.refresh(subscription_id, RefreshMode.SILENT)

    async def user_refresh(self, subscription_id: str) -> RefreshOutcome:
        return await self.refresh(subscription_id, RefreshMode.USER)

    async def scheduled_refresh(self, subscription_id: str) -> RefreshOutcome:
        return await self.refresh(subscription_id, RefreshMode.SCHEDULED)

    async def refresh(self, subscription_id: str, mode: RefreshMode = RefreshMode.USER) -> RefreshOutcome:
        """
        Fetch and apply the node count for one record.

        Missing records and non-http(s) URLs are skipped. Backend errors are
        logged (and shown to the user in USER mode) but never raised.
        """
        subscription = self.store.get(subscription_id)
        if subscription is None or not subscription.is_remote:
            return RefreshOutcome.SKIPPED

        label = format_display_name(subscription)
        tracked = mode is not RefreshMode.SILENT
        if tracked:
            self._inflight[subscription_id] = self._inflight.get(subscription_id, 0) + 1
            subscription.is_updating = True

        try:
            result = await self.backend.fetch_node_count(subscription.url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed to fetch node count for {label} ({subscription_id}): {e}")
            if mode is RefreshMode.USER:
                self.notify(f"{label} update failed", NotificationLevel.ERROR)
            return RefreshOutcome.FAILED
        finally:
            if tracked:
                self._clear_updating(subscription_id, subscription)

        # The record may have been deleted or edited while the call was out
        current = self.store.get(subscription_id)
        if current is None or current.url != subscription.url:
            logger.debug(f"Dropping node count for {subscription_id}: record changed during refresh")
            return RefreshOutcome.SKIPPED

        current.node_count = result.count or 0
        current.user_info = result.user_info or None
        logger.debug(f"Refreshed {label} ({subscription_id}): {current.node_count} nodes [{mode.value}]")

        if mode is RefreshMode.USER:
            self.notify(f"{label} updated successfully", NotificationLevel.SUCCESS)
        elif mode is RefreshMode.SCHEDULED:
            self.notify(f"{label} auto-update complete", NotificationLevel.SUCCESS)
        if mode is not RefreshMode.SILENT:
            self.mark_dirty()
        return RefreshOutcome.SUCCEEDED

    def _clear_updating(self, subscription_id: str, original: Subscription):
        remaining = self._inflight.get(subscription_id, 1) - 1
        if remaining > 0:
            self._inflight[subscription_id] = remaining
            return
        self._inflight.pop(subscription_id, None)
        original.is_updating = False
        current = self.store.get(subscription_id)
        if current is not None:
            current.is_updating = False

    def in_flight(self, subscription_id: str) -> int:
        return self._inflight.get(subscription_id, 0)
