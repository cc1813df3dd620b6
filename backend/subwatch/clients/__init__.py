"""
API clients for external services.
"""
from subwatch.clients.base import (
    BackendError,
    BaseSubscriptionBackend,
    BatchItemResult,
    BatchUpdateResult,
    NodeCountResult,
    RemoteSettings,
)
from subwatch.clients.http_backend import HttpSubscriptionBackend

__all__ = [
    "BackendError",
    "BaseSubscriptionBackend",
    "BatchItemResult",
    "BatchUpdateResult",
    "NodeCountResult",
    "RemoteSettings",
    "HttpSubscriptionBackend",
    "create_backend",
]


def create_backend(config) -> BaseSubscriptionBackend:
    """
    Build the backend client from a BackendConfig.

    Args:
        config: BackendConfig instance

    Returns:
        Backend client instance
    """
    return HttpSubscriptionBackend(url=config.url, timeout_seconds=config.timeout_seconds)
