"""
Notification sink for user-facing status messages.
"""
import asyncio
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Set, Union
import aiohttp
from loguru import logger

from subwatch.config import NotificationsConfig, WebhookNotificationConfig
from subwatch.constants import (
    WEBHOOK_TIMEOUT_SECONDS,
    WEBHOOK_MAX_RETRIES,
    WEBHOOK_INITIAL_BACKOFF_SECONDS,
    WEBHOOK_BACKOFF_MULTIPLIER,
)
from subwatch.models.notification import NotificationEntry, NotificationLevel


class NotificationService:
    """
    Keeps a feed of recent messages and forwards them to webhooks.

    ``notify`` never blocks: webhook delivery is scheduled as a task and
    retried with exponential backoff.
    """

    def __init__(self, config: NotificationsConfig, app_name: str = "Subwatch"):
        self.config = config
        self.app_name = app_name
        self._feed: Deque[NotificationEntry] = deque(maxlen=config.feed_size)
        self._deliveries: Set[asyncio.Task] = set()
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=WEBHOOK_TIMEOUT_SECONDS)
            )
        return self._session

    async def close(self):
        """Cancel pending deliveries and close the HTTP session."""
        for task in list(self._deliveries):
            task.cancel()
        if self._deliveries:
            await asyncio.gather(*self._deliveries, return_exceptions=True)
        if self._session and not self._session.closed:
            await self._session.close()

    def notify(self, message: str, level: Union[NotificationLevel, str] = NotificationLevel.INFO):
        """
        Record a message and fan it out to matching webhooks.

        Args:
            message: Human-readable message
            level: success, error or info
        """
        level = NotificationLevel(level)
        entry = NotificationEntry(level=level, message=message)
        self._feed.append(entry)
        logger.info(f"Notification [{level.value}]: {message}")

        for webhook in self.config.webhooks:
            if level.value in webhook.levels:
                self._schedule_delivery(webhook, entry)
            else:
                logger.debug(f"Webhook {webhook.name}: level '{level.value}' not in {webhook.levels}")

    def recent(self, limit: Optional[int] = None) -> List[NotificationEntry]:
        """Most recent notifications, newest first."""
        entries = list(reversed(self._feed))
        return entries[:limit] if limit else entries

    @property
    def pending_deliveries(self) -> int:
        return len(self._deliveries)

    def _schedule_delivery(self, webhook: WebhookNotificationConfig, entry: NotificationEntry):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"Webhook {webhook.name}: no running event loop, message not delivered")
            return
        task = loop.create_task(self._send_webhook(webhook, entry), name=f"webhook:{webhook.name}")
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def _send_webhook(self, webhook: WebhookNotificationConfig, entry: NotificationEntry) -> bool:
        payload = {
            "source": self.app_name,
            "level": entry.level.value,
            "message": entry.message,
            "timestamp": entry.timestamp.isoformat(),
        }
        return await self._request_with_retry(
            webhook.method,
            webhook.url,
            webhook.name,
            json=payload,
            headers=webhook.headers or None,
        )

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        service_name: str,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> bool:
        """
        Make HTTP request with exponential backoff retry.

        Returns:
            True if request succeeded, False otherwise
        """
        backoff = WEBHOOK_INITIAL_BACKOFF_SECONDS
        last_error = None

        for attempt in range(1, WEBHOOK_MAX_RETRIES + 1):
            try:
                async with self.session.request(method, url, json=json, headers=headers) as response:
                    if 200 <= response.status < 300:
                        logger.debug(f"{service_name} notification sent successfully")
                        return True
                    response_text = await response.text()
                    last_error = f"HTTP {response.status}: {response_text[:200]}"
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = str(e)

            logger.warning(
                f"{service_name} notification failed (attempt {attempt}/{WEBHOOK_MAX_RETRIES}): {last_error}"
            )
            if attempt < WEBHOOK_MAX_RETRIES:
                await asyncio.sleep(backoff)
                backoff *= WEBHOOK_BACKOFF_MULTIPLIER

        logger.error(f"Failed to send {service_name} notification after {WEBHOOK_MAX_RETRIES} attempts: {last_error}")
        return False
