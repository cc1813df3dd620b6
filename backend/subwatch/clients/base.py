"""
Subscription backend interface and response models.
"""
from abc import ABC, abstractmethod
from typing import List, Optional
from pydantic import BaseModel, Field

from subwatch.models.subscription import UserInfo


class BackendError(Exception):
    """Transport failure, non-2xx status or malformed body from the backend."""


class NodeCountResult(BaseModel):
    """Result of fetching one subscription URL."""
    count: Optional[int] = 0
    user_info: Optional[UserInfo] = Field(None, alias="userInfo")

    class Config:
        populate_by_name = True


class BatchItemResult(BaseModel):
    """Per-subscription entry of a batch update."""
    id: str
    success: bool = False
    node_count: Optional[int] = Field(None, alias="nodeCount")
    error: Optional[str] = None

    class Config:
        populate_by_name = True


class BatchUpdateResult(BaseModel):
    """
    Result of a batch update.

    ``success`` is the batch-level verdict; individual entries may still
    have failed when it is true.
    """
    success: bool = False
    message: Optional[str] = None
    results: List[BatchItemResult] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)


class RemoteSettings(BaseModel):
    """Settings document; only the global refresh interval is read."""
    update_interval: Optional[int] = Field(None, alias="updateInterval")

    class Config:
        populate_by_name = True
        extra = "allow"


class BaseSubscriptionBackend(ABC):
    """Abstract base class for the remote side of subscription refreshes."""

    @abstractmethod
    async def fetch_node_count(self, url: str) -> NodeCountResult:
        """Fetch the node count and quota usage for one subscription URL."""
        pass

    @abstractmethod
    async def batch_update_nodes(self, subscription_ids: List[str]) -> BatchUpdateResult:
        """Ask the backend to refresh several subscriptions in one call."""
        pass

    @abstractmethod
    async def fetch_settings(self) -> RemoteSettings:
        """Fetch the stored settings document."""
        pass

    async def close(self):
        """Release any held connections."""
        pass
