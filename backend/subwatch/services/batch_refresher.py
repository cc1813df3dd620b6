"""
Batch refresh with fallback to one-by-one refreshes.
"""
import asyncio
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from loguru import logger

from subwatch.clients.base import BaseSubscriptionBackend, BatchUpdateResult
from subwatch.models.notification import NotificationLevel
from subwatch.services.refresher import (
    MarkDirty,
    Notify,
    RefreshMode,
    RefreshOutcome,
    SingleItemRefresher,
)
from subwatch.services.subscription_store import SubscriptionStore


@dataclass
class BatchOutcome:
    total: int = 0
    succeeded: int = 0
    degraded: bool = False
    message: Optional[str] = None


class BatchRefresher:
    """
    Refreshes many records with one backend call.

    When the call raises or reports batch-level failure, every record is
    refreshed individually and sequentially instead. Individual failures
    inside a successful batch are reported in the count only.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        backend: BaseSubscriptionBackend,
        single: SingleItemRefresher,
        notify: Notify,
        mark_dirty: MarkDirty,
    ):
        self.store = store
        self.backend = backend
        self.single = single
        self.notify = notify
        self.mark_dirty = mark_dirty

    def _eligible_ids(self, subscription_ids: Iterable[str]) -> List[str]:
        ids = []
        seen = set()
        for subscription_id in subscription_ids:
            if subscription_id in seen:
                continue
            seen.add(subscription_id)
            subscription = self.store.get(subscription_id)
            if subscription is not None and subscription.is_remote:
                ids.append(subscription_id)
        return ids

    async def refresh(self, subscription_ids: Iterable[str], mode: RefreshMode = RefreshMode.USER) -> BatchOutcome:
        ids = self._eligible_ids(subscription_ids)
        if not ids:
            return BatchOutcome()

        outcome = BatchOutcome(total=len(ids))
        # URLs at request time; results for records edited meanwhile are dropped
        urls = {i: self.store.get(i).url for i in ids}
        user_initiated = mode is RefreshMode.USER

        try:
            result = await self.backend.batch_update_nodes(ids)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            outcome.message = str(e)
            logger.error(f"Batch update of {len(ids)} subscriptions failed: {e}")
            if user_initiated:
                self.notify("Batch update failed, falling back to one-by-one updates...", NotificationLevel.ERROR)
            await self._degrade(ids, mode, outcome)
            return outcome

        if not result.success:
            outcome.message = result.message
            logger.error(f"Batch update of {len(ids)} subscriptions rejected: {result.message}")
            if user_initiated:
                self.notify(f"Batch update failed: {result.message or 'unknown error'}", NotificationLevel.ERROR)
                self.notify("Falling back to one-by-one updates...", NotificationLevel.INFO)
            await self._degrade(ids, mode, outcome)
            return outcome

        outcome.succeeded = self._apply(result, urls)
        prefix = "Auto-update" if mode is RefreshMode.SCHEDULED else "Batch update"
        self.notify(
            f"{prefix} complete: {outcome.succeeded}/{outcome.total} subscriptions updated",
            NotificationLevel.SUCCESS,
        )
        self.mark_dirty()
        return outcome

    def _apply(self, result: BatchUpdateResult, urls: Dict[str, str]) -> int:
        """
        Write node counts from successful entries. Quota is left for the next
        single refresh. Returns the number of records actually updated.
        """
        applied = 0
        for item in result.results:
            if not item.success:
                logger.debug(f"Batch entry {item.id} failed: {item.error or 'no reason given'}")
                continue
            subscription = self.store.get(item.id)
            if subscription is None or item.id not in urls or subscription.url != urls[item.id]:
                logger.debug(f"Dropping batch result for {item.id}: record changed during refresh")
                continue
            if item.node_count is not None:
                subscription.node_count = item.node_count
            applied += 1
        return applied

    async def _degrade(self, ids: List[str], mode: RefreshMode, outcome: BatchOutcome):
        outcome.degraded = True
        logger.info(f"Falling back to sequential refresh of {len(ids)} subscriptions")
        for subscription_id in ids:
            if await self.single.refresh(subscription_id, mode) is RefreshOutcome.SUCCEEDED:
                outcome.succeeded += 1

        if mode is RefreshMode.SCHEDULED:
            self.notify(
                f"Auto-update complete after fallback: {outcome.succeeded}/{outcome.total} subscriptions updated",
                NotificationLevel.INFO,
            )
