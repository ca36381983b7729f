"""Domain errors for delivery lookup, withdrawal and notification."""

from typing import Optional


class PortariaError(Exception):
    """Base class for all application errors."""


class ValidationError(PortariaError):
    """Pickup code has the wrong format. Raised before any store I/O."""


class DeliveryNotFound(PortariaError):
    """No delivery holds the requested pickup code."""

    def __init__(self, code: str):
        super().__init__(f"No delivery found for code {code}")
        self.code = code


class AlreadyWithdrawn(PortariaError):
    """The delivery was already picked up."""

    def __init__(self, code: str):
        super().__init__(f"Delivery {code} was already withdrawn")
        self.code = code


class AmbiguousPickupCode(PortariaError):
    """More than one pending delivery shares a pickup code."""


class StoreUnavailable(PortariaError):
    """Neither the remote store nor the local cache could serve a request."""


class RemoteStoreError(PortariaError):
    """The authoritative remote store failed (not merely returned no rows)."""


class LocalCacheError(PortariaError):
    """The local cache could not be read or written."""


class NotificationDegraded(PortariaError):
    """Every notification channel failed after a committed store change.

    Never rolls back the store change; surfaced to the operator as a warning.
    """

    def __init__(self, outcome: Optional[object] = None):
        attempts = len(getattr(outcome, "attempts", []) or [])
        super().__init__(
            f"Notification not delivered after {attempts} attempt(s)"
        )
        self.outcome = outcome
