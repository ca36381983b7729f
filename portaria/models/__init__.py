"""Data models for delivery tracking."""

from .delivery import (
    DELIVERY_COLUMNS,
    Delivery,
    DeliveryStatus,
    Location,
    Resident,
)
from .notification import (
    ChannelAttempt,
    DispatchOutcome,
    MessageType,
    NotificationMessage,
)

__all__ = [
    "DELIVERY_COLUMNS",
    "Delivery",
    "DeliveryStatus",
    "Location",
    "Resident",
    "ChannelAttempt",
    "DispatchOutcome",
    "MessageType",
    "NotificationMessage",
]
