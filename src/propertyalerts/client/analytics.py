"""Best-effort reporting of notification interactions."""

import logging
from typing import Any, Optional

import httpx

from ..config import config

logger = logging.getLogger(__name__)


class InteractionReporter:
    """POST interaction records to the analytics endpoint.

    Never raises: a failed report is logged and dropped.
    """

    def __init__(
        self,
        analytics_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.analytics_url = analytics_url or config.analytics_url
        self._client = client
        self._timeout = timeout

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def report(self, record: dict[str, Any]) -> bool:
        """Send one interaction record.

        Args:
            record: {notificationId, type, action, timestamp}

        Returns:
            True if the endpoint accepted the record
        """
        if not self.analytics_url:
            logger.debug("No analytics URL configured, dropping interaction record")
            return False
        try:
            client = await self._get_client()
            resp = await client.post(self.analytics_url, json=record)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Interaction report failed: {e}")
            return False
        return True
