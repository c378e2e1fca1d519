"""
Blob storage for payment proof images (local uploads directory or Firebase Storage)
"""

import base64
import binascii
import io
import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Tuple, Union

from google.api_core.exceptions import GoogleAPICallError
from PIL import Image, UnidentifiedImageError

from app.core.config import settings
from app.core.errors import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r"^data:(image/[\w.+-]+);base64,(.*)$", re.DOTALL)

# Pillow format name -> (content type, extension)
IMAGE_FORMATS = {
    "PNG": ("image/png", "png"),
    "JPEG": ("image/jpeg", "jpg"),
    "GIF": ("image/gif", "gif"),
    "WEBP": ("image/webp", "webp"),
    "BMP": ("image/bmp", "bmp"),
}


def decode_proof_image(payload: Union[str, bytes, None], max_size: int = None) -> Tuple[bytes, str]:
    """Decode a data URL (or raw bytes) and check that it is a real image.

    Returns the image bytes and their content type.
    """
    if max_size is None:
        max_size = settings.MAX_UPLOAD_SIZE
    if not payload:
        raise ValidationError("Payment screenshot is required")

    if isinstance(payload, str):
        match = _DATA_URL.match(payload.strip())
        if not match:
            raise ValidationError("Invalid payment screenshot format")
        try:
            image_bytes = base64.b64decode(match.group(2), validate=False)
        except (binascii.Error, ValueError):
            raise ValidationError("Invalid payment screenshot format")
    else:
        image_bytes = bytes(payload)

    if len(image_bytes) > max_size:
        raise ValidationError(f"Payment screenshot exceeds {max_size // (1024 * 1024)}MB")

    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            image_format = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise ValidationError("Payment screenshot is not a recognized image")

    if image_format not in IMAGE_FORMATS:
        raise ValidationError(f"Unsupported image format: {image_format}")
    return image_bytes, IMAGE_FORMATS[image_format][0]


def _extension_for(content_type: str) -> str:
    for ctype, ext in IMAGE_FORMATS.values():
        if ctype == content_type:
            return ext
    return "bin"


class BlobStore(ABC):
    """Interface for image uploads"""

    @abstractmethod
    def upload(self, image_bytes: bytes, folder: str, public_id: str, content_type: str) -> str:
        """Store the image and return its public URL; raises UpstreamError on failure."""
        ...


class LocalBlobStore(BlobStore):
    """Writes uploads below a local directory served under /uploads"""

    def __init__(self, root: str = None, base_url: str = None):
        self.root = root or settings.UPLOAD_DIR
        self.base_url = (base_url or settings.BASE_URL).rstrip("/")

    def upload(self, image_bytes: bytes, folder: str, public_id: str, content_type: str) -> str:
        filename = f"{public_id}.{_extension_for(content_type)}"
        directory = os.path.join(self.root, folder)
        try:
            os.makedirs(directory, exist_ok=True)
            with open(os.path.join(directory, filename), "wb") as f:
                f.write(image_bytes)
        except OSError as exc:
            logger.exception(f"Failed to store upload {folder}/{filename}")
            raise UpstreamError("Failed to upload payment screenshot. Please try again.") from exc
        return f"{self.base_url}/uploads/{folder}/{filename}"


class FirebaseBlobStore(BlobStore):
    """Uploads to the Firebase Storage bucket"""

    def __init__(self, bucket):
        self.bucket = bucket

    def upload(self, image_bytes: bytes, folder: str, public_id: str, content_type: str) -> str:
        blob = self.bucket.blob(f"{folder}/{public_id}.{_extension_for(content_type)}")
        try:
            blob.upload_from_string(image_bytes, content_type=content_type)
            blob.make_public()
        except GoogleAPICallError as exc:
            logger.exception(f"Firebase upload failed for {blob.name}")
            raise UpstreamError("Failed to upload payment screenshot. Please try again.") from exc
        return blob.public_url
