"""HTTP endpoints that forward messages to residents."""

import asyncio
import time
from typing import Dict, Optional, Protocol
import httpx
from loguru import logger

from ..config import settings
from ..models.notification import ChannelAttempt, NotificationMessage


class Transport(Protocol):
    """One channel of the dispatch chain."""

    name: str

    async def send(self, message: NotificationMessage) -> ChannelAttempt:
        """Deliver a message. Never raises; failures are reported in the attempt."""
        ...


class HttpTransport:
    """
    POSTs the message JSON to an endpoint; any 2xx counts as delivered.

    The whole attempt, connection included, is bounded by `timeout`.
    """

    def __init__(
        self,
        name: str,
        url: str,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.name = name
        self.url = url
        self.timeout = timeout or settings.notification_timeout_seconds
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self.client = client

    async def _post(self, body: dict) -> httpx.Response:
        if self.client is not None:
            return await self.client.post(self.url, json=body, headers=self.headers)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.url, json=body, headers=self.headers)

    async def send(self, message: NotificationMessage) -> ChannelAttempt:
        started = time.perf_counter()
        status_code = None
        error = None

        try:
            response = await asyncio.wait_for(
                self._post(message.to_body()), timeout=self.timeout
            )
            status_code = response.status_code
            if not response.is_success:
                error = f"HTTP {status_code}: {response.text[:200]}"
        except asyncio.TimeoutError:
            error = f"timed out after {self.timeout}s"
        except httpx.HTTPError as e:
            error = f"{type(e).__name__}: {e}"

        latency_ms = (time.perf_counter() - started) * 1000
        return ChannelAttempt(
            channel=self.name,
            success=error is None,
            status_code=status_code,
            error=error,
            latency_ms=round(latency_ms, 1)
        )

    def __repr__(self) -> str:
        return f"HttpTransport(name={self.name!r}, url={self.url!r})"


def build_transports(client: Optional[httpx.AsyncClient] = None) -> list:
    """Transports for every configured channel, in fallback order."""
    transports = []
    for name, url in settings.notification_channels:
        headers = {}
        if name == "function" and settings.notification_secondary_token:
            headers["Authorization"] = f"Bearer {settings.notification_secondary_token}"
        transports.append(HttpTransport(name, url, headers=headers, client=client))

    if not transports:
        logger.warning("No notification channel configured")
    return transports
