"""
Canonical subscription collection and its derived views.
"""
import math
from typing import Dict, Iterable, List, Optional, Set

from subwatch.constants import SUBSCRIPTIONS_PAGE_SIZE
from subwatch.models.subscription import Subscription


class SubscriptionStore:
    """
    Ordered collection of subscription records plus pagination state.

    Views are computed on every read from the current records, so they are
    always consistent with the last mutation. The store itself never talks
    to the network; SubscriptionManager layers the side effects on top.
    """

    def __init__(self, page_size: int = SUBSCRIPTIONS_PAGE_SIZE):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.page_size = page_size
        self.current_page = 1
        self._subscriptions: List[Subscription] = []

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __iter__(self):
        return iter(list(self._subscriptions))

    @property
    def subscriptions(self) -> List[Subscription]:
        """Snapshot of the collection in display order."""
        return list(self._subscriptions)

    def get(self, subscription_id: str) -> Optional[Subscription]:
        for subscription in self._subscriptions:
            if subscription.id == subscription_id:
                return subscription
        return None

    def ids(self) -> Set[str]:
        return {s.id for s in self._subscriptions}

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def replace_all(self, subscriptions: Iterable[Subscription]):
        self._subscriptions = list(subscriptions)
        self.clamp_page()

    def prepend(self, subscriptions: Iterable[Subscription]):
        """Insert records at the front, keeping their relative order."""
        self._subscriptions[0:0] = list(subscriptions)

    def replace(self, subscription: Subscription) -> Optional[Subscription]:
        """Swap in a record with the same id. Returns the previous record."""
        for index, current in enumerate(self._subscriptions):
            if current.id == subscription.id:
                self._subscriptions[index] = subscription
                return current
        return None

    def remove(self, subscription_id: str) -> Optional[Subscription]:
        """
        Remove a record. When that empties the current page, step back one
        page (never below page 1).
        """
        removed = None
        remaining = []
        for subscription in self._subscriptions:
            if removed is None and subscription.id == subscription_id:
                removed = subscription
            else:
                remaining.append(subscription)
        if removed is None:
            return None

        self._subscriptions = remaining
        if not self.paginated_slice() and self.current_page > 1:
            self.current_page -= 1
        return removed

    def clear(self):
        self._subscriptions = []
        self.current_page = 1

    # -------------------------------------------------------------------------
    # Pagination
    # -------------------------------------------------------------------------

    @property
    def total_pages(self) -> int:
        return math.ceil(len(self._subscriptions) / self.page_size)

    def change_page(self, page: int) -> bool:
        """Move to ``page``; ignored when it is outside [1, total_pages]."""
        if page < 1 or page > self.total_pages:
            return False
        self.current_page = page
        return True

    def reset_page(self):
        self.current_page = 1

    def clamp_page(self):
        self.current_page = min(max(1, self.current_page), max(1, self.total_pages))

    def paginated_slice(self, page: Optional[int] = None, page_size: Optional[int] = None) -> List[Subscription]:
        """Records on ``page`` (default: the current page)."""
        page = self.current_page if page is None else page
        size = page_size or self.page_size
        if page < 1:
            return []
        start = (page - 1) * size
        return self._subscriptions[start:start + size]

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    @property
    def enabled_subset(self) -> List[Subscription]:
        return [s for s in self._subscriptions if s.enabled]

    @property
    def enabled_count(self) -> int:
        return len(self.enabled_subset)

    @property
    def aggregate_remaining_quota(self) -> float:
        """Remaining traffic summed over enabled records that report a quota."""
        return sum(s.remaining_quota for s in self._subscriptions if s.enabled)

    def summary(self) -> Dict[str, float]:
        return {
            "total": len(self._subscriptions),
            "enabled_count": self.enabled_count,
            "current_page": self.current_page,
            "total_pages": self.total_pages,
            "remaining_quota": self.aggregate_remaining_quota,
        }
