"""Google Cloud Storage client for delivery evidence photos."""

from datetime import datetime
from io import BytesIO
from typing import Optional
from google.cloud import storage
from PIL import Image, ImageOps, UnidentifiedImageError
from loguru import logger
from tenacity import retry, stop_after_attempt, wait_exponential

from ..config import settings

MAX_PHOTO_SIZE = (1024, 1024)


def preprocess_photo(image_bytes: bytes) -> bytes:
    """
    Normalize a photo before upload.

    Applies EXIF rotation, converts to RGB, shrinks to MAX_PHOTO_SIZE and
    re-encodes as JPEG. Undecodable input is returned unchanged.
    """
    try:
        img = Image.open(BytesIO(image_bytes))
        img = ImageOps.exif_transpose(img)

        if img.mode != "RGB":
            img = img.convert("RGB")

        if img.size[0] > MAX_PHOTO_SIZE[0] or img.size[1] > MAX_PHOTO_SIZE[1]:
            img.thumbnail(MAX_PHOTO_SIZE, Image.Resampling.BILINEAR)
            logger.info(f"Resized photo to {img.size}")

        img_byte_arr = BytesIO()
        img.save(img_byte_arr, format="JPEG", quality=80)
        return img_byte_arr.getvalue()

    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Photo preprocessing failed, uploading original: {e}")
        return image_bytes


class GCSClient:
    """Uploads delivery photos and returns their public URL."""

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        client: Optional[storage.Client] = None
    ):
        """
        Initialize GCS client.

        Args:
            bucket_name: Name of the GCS bucket. If None, uses settings.
            client: Prebuilt storage client (tests, custom credentials)
        """
        self.bucket_name = bucket_name or settings.gcs_bucket_name
        if not self.bucket_name:
            raise ValueError("GCS_BUCKET_NAME must be set in environment variables")

        if client is not None:
            self.client = client
        elif settings.google_application_credentials:
            self.client = storage.Client.from_service_account_json(
                settings.google_application_credentials
            )
        else:
            self.client = storage.Client(project=settings.gcp_project_id)

        self.bucket = self.client.bucket(self.bucket_name)
        logger.info(f"GCS Client initialized for bucket: {self.bucket_name}")

    @staticmethod
    def blob_name_for(
        pickup_code: str,
        scope_id: Optional[str] = None,
        upload_date: Optional[datetime] = None
    ) -> str:
        """Files are organized as [scope/]YYYY-MM-DD/CODE_HHMMSS.jpg."""
        date = upload_date or datetime.now()
        clean_code = "".join(c for c in pickup_code if c.isalnum())
        name = f"{date.strftime('%Y-%m-%d')}/{clean_code}_{date.strftime('%H%M%S')}.jpg"
        if scope_id:
            clean_scope = "".join(c for c in scope_id if c.isalnum() or c in "-_")
            name = f"{clean_scope}/{name}"
        return name

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        reraise=True
    )
    def upload_delivery_photo(
        self,
        image_bytes: bytes,
        pickup_code: str,
        scope_id: Optional[str] = None,
        upload_date: Optional[datetime] = None
    ) -> str:
        """
        Upload a delivery photo.

        Returns:
            Public URL of the uploaded file
        """
        blob_name = self.blob_name_for(pickup_code, scope_id, upload_date)
        blob = self.bucket.blob(blob_name)
        blob.upload_from_string(
            preprocess_photo(image_bytes),
            content_type="image/jpeg",
            timeout=60
        )

        public_url = blob.public_url
        logger.info(f"Delivery photo uploaded to {blob_name}")
        return public_url
