"""
Notification models.
"""
from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field


class NotificationLevel(str, Enum):
    """Severity of a user-facing status message."""
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class NotificationEntry(BaseModel):
    """A status message as kept in the recent-notifications feed."""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    level: NotificationLevel
    message: str
