"""Ordered-fallback notification dispatch."""

from typing import Optional, Sequence
import httpx
from loguru import logger

from ..models.notification import DispatchOutcome, NotificationMessage
from .transports import Transport, build_transports


class NotificationDispatcher:
    """
    Sends a message through a chain of transports.

    Channels are tried in order and the walk stops at the first success.
    Every attempt is logged with channel, status and latency.
    """

    def __init__(self, transports: Sequence[Transport]):
        self.transports = list(transports)
        logger.info(
            "Notification chain: "
            + (" -> ".join(t.name for t in self.transports) or "(empty)")
        )

    @classmethod
    def from_settings(
        cls, client: Optional[httpx.AsyncClient] = None
    ) -> "NotificationDispatcher":
        return cls(build_transports(client))

    async def dispatch(self, message: NotificationMessage) -> DispatchOutcome:
        """Return the outcome of the chain. Never raises for channel failures."""
        attempts = []

        for transport in self.transports:
            attempt = await transport.send(message)
            attempts.append(attempt)

            if attempt.success:
                logger.info(
                    f"📤 {message.type.value} message to {message.to} sent via "
                    f"{attempt.channel} (status {attempt.status_code}, "
                    f"{attempt.latency_ms:.0f}ms)"
                )
                return DispatchOutcome(
                    success=True, channel=attempt.channel, attempts=attempts
                )

            logger.warning(
                f"Channel {attempt.channel} failed for {message.type.value} "
                f"message to {message.to}: {attempt.error} "
                f"({attempt.latency_ms:.0f}ms)"
            )

        logger.error(
            f"❌ {message.type.value} message to {message.to} not delivered "
            f"after {len(attempts)} attempt(s)"
        )
        return DispatchOutcome(success=False, attempts=attempts)
