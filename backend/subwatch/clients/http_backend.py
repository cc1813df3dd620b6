"""
HTTP client for the subscription backend API.
"""
import asyncio
from typing import Any, Dict, List, Optional, Type, TypeVar
import aiohttp
from loguru import logger
from pydantic import BaseModel, ValidationError

from subwatch.clients.base import (
    BackendError,
    BaseSubscriptionBackend,
    BatchUpdateResult,
    NodeCountResult,
    RemoteSettings,
)
from subwatch.constants import HTTP_CLIENT_TIMEOUT_SECONDS

ResultT = TypeVar("ResultT", bound=BaseModel)


class HttpSubscriptionBackend(BaseSubscriptionBackend):
    """
    Client for the subscription backend.

    Endpoints:
        POST {url}/api/node_count          {"url": ...}
        POST {url}/api/batch_update_nodes  {"subscriptionIds": [...]}
        GET  {url}/api/settings
    """

    def __init__(self, url: str, timeout_seconds: float = HTTP_CLIENT_TIMEOUT_SECONDS):
        self.url = url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
            )
        return self._session

    async def close(self):
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def fetch_node_count(self, url: str) -> NodeCountResult:
        data = await self._api_call("POST", "/api/node_count", {"url": url})
        return self._parse(NodeCountResult, data, "node_count")

    async def batch_update_nodes(self, subscription_ids: List[str]) -> BatchUpdateResult:
        data = await self._api_call(
            "POST", "/api/batch_update_nodes", {"subscriptionIds": list(subscription_ids)}
        )
        return self._parse(BatchUpdateResult, data, "batch_update_nodes")

    async def fetch_settings(self) -> RemoteSettings:
        data = await self._api_call("GET", "/api/settings")
        return self._parse(RemoteSettings, data or {}, "settings")

    @staticmethod
    def _parse(model: Type[ResultT], data: Any, endpoint: str) -> ResultT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise BackendError(f"Malformed {endpoint} response: {e}") from e

    async def _api_call(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        """Execute a backend API call and return the decoded JSON body."""
        if not self.url:
            raise BackendError("Subscription backend URL is not configured")

        url = f"{self.url}{path}"

        try:
            async with self.session.request(method, url, json=payload) as response:
                response.raise_for_status()
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.debug(f"Backend call {method} {path} failed: {type(e).__name__}: {e}")
            raise BackendError(f"{method} {path} failed: {e}") from e
