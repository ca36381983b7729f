"""Notification message and dispatch outcome models."""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class MessageType(str, Enum):
    """Kind of resident-facing message."""

    DELIVERY = "delivery"
    WITHDRAWAL = "withdrawal"
    REMINDER = "reminder"
    TEST = "test"

    @property
    def payload_key(self) -> Optional[str]:
        """Body field carrying the structured payload, if any."""
        return {
            MessageType.DELIVERY: "deliveryData",
            MessageType.WITHDRAWAL: "withdrawalData",
            MessageType.REMINDER: "reminderData",
        }.get(self)


class NotificationMessage(BaseModel):
    """A rendered message plus its machine-readable mirror."""

    to: str
    text: str
    type: MessageType
    payload: Dict[str, Any] = Field(default_factory=dict)

    def to_body(self) -> Dict[str, Any]:
        """JSON document posted to every transport."""
        body: Dict[str, Any] = {
            "to": self.to,
            "message": self.text,
            "type": self.type.value,
        }
        if self.type.payload_key:
            body[self.type.payload_key] = self.payload
        return body


class ChannelAttempt(BaseModel):
    """Result of posting a message to one channel."""

    channel: str
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    latency_ms: float = 0.0


class DispatchOutcome(BaseModel):
    """Result of walking the fallback chain."""

    success: bool
    channel: Optional[str] = None
    attempts: List[ChannelAttempt] = Field(default_factory=list)
