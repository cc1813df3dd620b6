import asyncio
from typing import Dict, List, Optional, Tuple, Union

import pytest

from subwatch.clients.base import (
    BackendError,
    BaseSubscriptionBackend,
    BatchItemResult,
    BatchUpdateResult,
    NodeCountResult,
    RemoteSettings,
)
from subwatch.models.notification import NotificationLevel
from subwatch.models.subscription import UserInfo
from subwatch.services.subscription_manager import SubscriptionManager

# One "minute" of timer interval in tests
FAST_MINUTE = 0.01

GB = 1024 ** 3


class FakeBackend(BaseSubscriptionBackend):
    """In-memory backend that records every call."""

    def __init__(self):
        self.node_counts: Dict[str, Union[NodeCountResult, Exception]] = {}
        self.default_count = 10
        self.batch_result: Optional[BatchUpdateResult] = None
        self.batch_error: Optional[Exception] = None
        self.settings_interval: Optional[int] = 0
        self.settings_error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.url_gates: Dict[str, asyncio.Event] = {}
        self.batch_gate: Optional[asyncio.Event] = None
        self.node_count_calls: List[str] = []
        self.batch_calls: List[List[str]] = []
        self.settings_calls = 0
        self.closed = False

    async def fetch_node_count(self, url: str) -> NodeCountResult:
        self.node_count_calls.append(url)
        gate = self.url_gates.get(url) or self.gate
        if gate is not None:
            await gate.wait()
        result = self.node_counts.get(url)
        if isinstance(result, Exception):
            raise result
        return result or NodeCountResult(count=self.default_count)

    async def batch_update_nodes(self, subscription_ids: List[str]) -> BatchUpdateResult:
        self.batch_calls.append(list(subscription_ids))
        if self.batch_gate is not None:
            await self.batch_gate.wait()
        if self.batch_error is not None:
            raise self.batch_error
        if self.batch_result is not None:
            return self.batch_result
        return BatchUpdateResult(
            success=True,
            results=[
                BatchItemResult(id=i, success=True, node_count=self.default_count)
                for i in subscription_ids
            ],
        )

    async def fetch_settings(self) -> RemoteSettings:
        self.settings_calls += 1
        if self.settings_error is not None:
            raise self.settings_error
        return RemoteSettings(update_interval=self.settings_interval)

    async def close(self):
        self.closed = True


class RecordingNotifier:
    def __init__(self):
        self.messages: List[Tuple[str, NotificationLevel]] = []

    def __call__(self, message: str, level: NotificationLevel):
        self.messages.append((message, NotificationLevel(level)))

    def texts(self, level: Optional[NotificationLevel] = None) -> List[str]:
        return [m for m, lvl in self.messages if level is None or lvl == level]


class DirtyCounter:
    def __init__(self):
        self.count = 0

    def __call__(self):
        self.count += 1


def sub(sub_id: str, url: str = None, **extra):
    """Raw subscription dict as the host would send it."""
    data = {"id": sub_id, "name": sub_id.upper(), "url": url if url is not None else f"https://example.com/{sub_id}"}
    data.update(extra)
    return data


def quota(total_gb: float, used_gb: float = 0) -> UserInfo:
    return UserInfo(upload=0, download=used_gb * GB, total=total_gb * GB)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def dirty():
    return DirtyCounter()


@pytest.fixture
def make_manager(backend, notifier, dirty):
    def factory(**kwargs) -> SubscriptionManager:
        kwargs.setdefault("seconds_per_minute", FAST_MINUTE)
        return SubscriptionManager(backend, notifier, dirty, **kwargs)
    return factory
