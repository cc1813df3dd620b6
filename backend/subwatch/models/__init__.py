"""
Data models for Subwatch.
"""
from subwatch.models.subscription import Subscription, UserInfo, normalize_subscription, remote_ids
from subwatch.models.notification import NotificationLevel, NotificationEntry
from subwatch.models.stored import StoredSubscription

__all__ = [
    "Subscription",
    "UserInfo",
    "normalize_subscription",
    "remote_ids",
    "NotificationLevel",
    "NotificationEntry",
    "StoredSubscription",
]
