"""Registration of incoming packages."""

import asyncio
import uuid
from typing import Optional, Tuple
from loguru import logger

from ..codes import generate_unique_code
from ..config import settings
from ..messaging.dispatcher import NotificationDispatcher
from ..messaging.templates import build_delivery_message
from ..models.delivery import Delivery, Location, Resident, utcnow
from ..models.notification import DispatchOutcome
from ..storage.delivery_store import DeliveryStore
from ..storage.gcs_client import GCSClient


class RegistrationWorkflow:
    """Stores a new delivery with a fresh pickup code and notifies the resident."""

    def __init__(
        self,
        store: DeliveryStore,
        dispatcher: NotificationDispatcher,
        photos: Optional[GCSClient] = None,
        condominium: Optional[str] = None
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.photos = photos
        self.condominium = condominium or settings.condominium_name

    async def _upload_photo(
        self, photo_bytes: bytes, code: str, scope_id: Optional[str]
    ) -> Optional[str]:
        """Photo upload is optional evidence; failure leaves photo_ref empty."""
        if self.photos is None:
            logger.warning("GCS_BUCKET_NAME not set - skipping photo upload")
            return None
        try:
            return await asyncio.to_thread(
                self.photos.upload_delivery_photo, photo_bytes, code, scope_id
            )
        except Exception as e:
            logger.warning(f"Photo upload failed (non-critical): {e}")
            return None

    async def register(
        self,
        scope_id: Optional[str],
        resident: Resident,
        location: Location,
        notes: Optional[str] = None,
        photo_bytes: Optional[bytes] = None,
        photo_ref: Optional[str] = None
    ) -> Tuple[Delivery, DispatchOutcome]:
        """
        Register a package.

        Args:
            scope_id: Condominium the package belongs to
            resident: Addressee
            location: Apartment
            notes: Free-text observations
            photo_bytes: Raw photo to upload as evidence
            photo_ref: Already-hosted photo URL, used when no bytes are given

        Returns:
            Tuple of (stored delivery, notification outcome)

        Raises:
            AmbiguousPickupCode: If no free code could be generated
            StoreUnavailable: If the delivery could not be stored
        """
        # Step 1: Pick a code no pending delivery of the scope uses
        taken = await self.store.pending_codes(scope_id)
        code = generate_unique_code(taken)

        # Step 2: Upload the evidence photo
        if photo_bytes:
            photo_ref = await self._upload_photo(photo_bytes, code, scope_id) or photo_ref

        # Step 3: Store
        delivery = Delivery(
            id=str(uuid.uuid4()),
            scope_id=scope_id,
            resident=resident,
            location=location,
            pickup_code=code,
            photo_ref=photo_ref,
            notes=notes or None,
            registered_at=utcnow(),
        )
        delivery = await self.store.register(delivery)

        # Step 4: Notify
        outcome = await self.dispatcher.dispatch(
            build_delivery_message(delivery, self.condominium)
        )
        if not outcome.success:
            logger.warning(
                f"Delivery {delivery.pickup_code} registered but resident not notified"
            )
        return delivery, outcome
