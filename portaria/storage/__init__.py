"""Delivery storage: remote store, local cache and the adapter over both."""

from .delivery_store import DeliveryStore
from .local_cache import LocalCache
from .reconciler import reconcile

__all__ = ["DeliveryStore", "LocalCache", "reconcile"]
