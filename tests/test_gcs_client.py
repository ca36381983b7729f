"""Tests for photo preprocessing and upload naming (no real bucket)."""

from datetime import datetime
from io import BytesIO
from unittest.mock import MagicMock

from PIL import Image

from portaria.storage.gcs_client import GCSClient, preprocess_photo


def _png(size):
    buf = BytesIO()
    Image.new("RGBA", size, (255, 0, 0, 255)).save(buf, format="PNG")
    return buf.getvalue()


def test_preprocess_converts_and_shrinks():
    out = Image.open(BytesIO(preprocess_photo(_png((2000, 1000)))))

    assert out.format == "JPEG"
    assert out.mode == "RGB"
    assert max(out.size) == 1024


def test_preprocess_keeps_undecodable_bytes():
    assert preprocess_photo(b"not an image") == b"not an image"


def test_blob_name_layout():
    when = datetime(2025, 9, 14, 16, 30, 5)
    assert GCSClient.blob_name_for("12345", "condo 1", when) == "condo1/2025-09-14/12345_163005.jpg"
    assert GCSClient.blob_name_for("12345", None, when) == "2025-09-14/12345_163005.jpg"


def test_upload_returns_public_url():
    storage_client = MagicMock()
    blob = storage_client.bucket.return_value.blob.return_value
    blob.public_url = "https://storage.googleapis.com/b/condo-1/x.jpg"

    client = GCSClient(bucket_name="b", client=storage_client)
    url = client.upload_delivery_photo(_png((10, 10)), "12345", "condo-1")

    assert url == blob.public_url
    blob.upload_from_string.assert_called_once()
    assert blob.upload_from_string.call_args.kwargs["content_type"] == "image/jpeg"
