"""
Signature capture

DESIGN DECISION: The UI never hands raw widget state to the rest of the
system. Whatever captures the signature (an upload, a drawing canvas)
sits behind SignaturePad and produces a base64 image data URL, which is
what the profile stores and what the exports draw.

Images are checked with Pillow before they are accepted, so a broken
upload fails here instead of inside a PDF render.
"""

import base64
import binascii
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Optional

import structlog
from PIL import Image, UnidentifiedImageError

from receiptbook.config import get_settings


logger = structlog.get_logger(__name__)

DATA_URL_PREFIX = "data:image/"

# Pillow format name -> MIME subtype
_FORMAT_SUBTYPES = {
    "PNG": "png",
    "JPEG": "jpeg",
    "GIF": "gif",
    "BMP": "bmp",
    "WEBP": "webp",
}


class SignatureImageError(ValueError):
    """The signature is not a decodable base64 image data URL."""
    pass


def decode_data_url(data_url: str) -> bytes:
    """
    Decode a base64 image data URL and verify the payload is an image.

    Args:
        data_url: e.g. "data:image/png;base64,iVBORw0..."

    Returns:
        Raw image bytes

    Raises:
        SignatureImageError: If the URL is malformed or the image is unreadable
    """
    if not isinstance(data_url, str) or not data_url.startswith(DATA_URL_PREFIX):
        raise SignatureImageError("Signature is not an image data URL")

    header, sep, payload = data_url.partition(",")
    if not sep or not header.endswith(";base64"):
        raise SignatureImageError("Signature data URL is not base64 encoded")

    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SignatureImageError(f"Signature payload is not valid base64: {e}") from e

    if not raw:
        raise SignatureImageError("Signature image is empty")

    try:
        with Image.open(BytesIO(raw)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise SignatureImageError(f"Signature image could not be read: {e}") from e

    return raw


def encode_data_url(image_bytes: bytes) -> str:
    """
    Turn uploaded image bytes into a base64 data URL.

    The MIME type comes from the image itself, not from a file name.

    Raises:
        SignatureImageError: If the bytes are not a supported image
    """
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            image_format = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise SignatureImageError(f"Uploaded file is not an image: {e}") from e

    subtype = _FORMAT_SUBTYPES.get(image_format or "")
    if subtype is None:
        raise SignatureImageError(f"Unsupported signature image format: {image_format}")

    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"{DATA_URL_PREFIX}{subtype};base64,{encoded}"


class SignaturePad(ABC):
    """
    Abstract signature capture widget.

    Implementations hold at most one signature at a time.
    """

    @abstractmethod
    def is_empty(self) -> bool:
        """True when nothing has been captured."""
        pass

    @abstractmethod
    def to_image(self) -> str:
        """
        Return the captured signature as a data URL.

        Raises:
            SignatureImageError: If the pad is empty
        """
        pass

    @abstractmethod
    def load_image(self, data_url: str) -> None:
        """Replace the pad contents with an existing signature."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Discard the captured signature."""
        pass


class DataUrlSignaturePad(SignaturePad):
    """
    In-memory signature pad backed by a data URL.

    Used for uploaded signature images and in tests.
    """

    def __init__(
        self,
        data_url: Optional[str] = None,
        max_bytes: Optional[int] = None,
    ):
        if max_bytes is None:
            max_bytes = get_settings().app.max_signature_size_bytes
        self._max_bytes = max_bytes
        self._data_url: Optional[str] = None
        if data_url:
            self.load_image(data_url)

    def is_empty(self) -> bool:
        return not self._data_url

    def to_image(self) -> str:
        if not self._data_url:
            raise SignatureImageError("No signature has been captured")
        return self._data_url

    def load_image(self, data_url: str) -> None:
        raw = decode_data_url(data_url)
        if len(raw) > self._max_bytes:
            raise SignatureImageError(
                f"Signature image is {len(raw)} bytes; the limit is {self._max_bytes}"
            )
        self._data_url = data_url
        logger.debug("signature_loaded", size_bytes=len(raw))

    def load_bytes(self, image_bytes: bytes) -> None:
        """Load raw uploaded image bytes (e.g. from a file uploader)."""
        self.load_image(encode_data_url(image_bytes))

    def clear(self) -> None:
        self._data_url = None
