"""Resident notifications over a fallback chain of HTTP channels."""

from .dispatcher import NotificationDispatcher
from .transports import HttpTransport

__all__ = ["NotificationDispatcher", "HttpTransport"]
