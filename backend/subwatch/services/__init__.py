"""
Service layer for Subwatch.
"""
from subwatch.services.subscription_store import SubscriptionStore
from subwatch.services.refresher import SingleItemRefresher, RefreshMode, RefreshOutcome
from subwatch.services.batch_refresher import BatchRefresher, BatchOutcome
from subwatch.services.global_scheduler import GlobalScheduler
from subwatch.services.item_scheduler import ItemScheduler
from subwatch.services.subscription_manager import SubscriptionManager
from subwatch.services.notification_service import NotificationService
from subwatch.services.persistence_service import PersistenceService

__all__ = [
    "SubscriptionStore",
    "SingleItemRefresher",
    "RefreshMode",
    "RefreshOutcome",
    "BatchRefresher",
    "BatchOutcome",
    "GlobalScheduler",
    "ItemScheduler",
    "SubscriptionManager",
    "NotificationService",
    "PersistenceService",
]
