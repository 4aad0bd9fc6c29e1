"""Signature image decoding and the per-session image registry."""

import base64
import binascii
import hashlib
import io

from PIL import Image, UnidentifiedImageError

from docsign.utils.logger import logger
from docsign.utils.validators import validate_data_url


class ImageDecodeError(Exception):
    """Raised when a signature image cannot be decoded."""

    pass


def decode_data_url(data_url: str) -> bytes:
    """Return the raw bytes of a base64 image data URL."""
    if not validate_data_url(data_url):
        raise ImageDecodeError("Expected a base64 image data URL (data:image/...;base64,...)")
    _, encoded = data_url.split(",", 1)
    try:
        return base64.b64decode("".join(encoded.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Invalid base64 payload: {e}") from e


def encode_data_url(image_bytes: bytes, mime_type: str = "image/png") -> str:
    """Encode image bytes as a data URL."""
    return f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"


def open_image(image_bytes: bytes) -> Image.Image:
    """Decode image bytes fully, raising ImageDecodeError on any failure."""
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
        return img
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Cannot decode image: {e}") from e


def image_size(image_bytes: bytes) -> tuple[int, int]:
    """Intrinsic (width, height) in pixels."""
    width, height = open_image(image_bytes).size
    if width <= 0 or height <= 0:
        raise ImageDecodeError("Image has no pixels")
    return width, height


def to_png(image_bytes: bytes) -> bytes:
    """Re-encode any decodable image as RGBA PNG."""
    img = open_image(image_bytes)
    if img.mode != "RGBA":
        img = img.convert("RGBA")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def remove_white_background(image_bytes: bytes, threshold: int = 240) -> bytes:
    """
    Make near-white pixels transparent, e.g. for a photographed signature.

    Pixels whose R, G and B are all at or above ``threshold`` become fully
    transparent. Returns PNG bytes.
    """
    img = open_image(image_bytes).convert("RGBA")

    new_pixels = []
    for r, g, b, a in img.getdata():
        if r >= threshold and g >= threshold and b >= threshold:
            new_pixels.append((255, 255, 255, 0))
        else:
            new_pixels.append((r, g, b, a))
    img.putdata(new_pixels)

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class ImageRegistry:
    """Maps overlay image references to signature data URLs.

    References are content hashes, so placing the same signature twice
    stores it once.
    """

    def __init__(self):
        self._images: dict[str, str] = {}

    def put(self, data_url: str) -> str:
        ref = "img_" + hashlib.sha256(data_url.encode("utf-8")).hexdigest()[:16]
        self._images[ref] = data_url
        return ref

    def get(self, image_ref: str) -> str | None:
        return self._images.get(image_ref)

    def resolve(self, image_ref: str) -> bytes:
        """Image bytes for a reference; used as the compositor's image resolver."""
        data_url = self._images.get(image_ref)
        if data_url is None:
            logger.warning(f"Unknown image reference {image_ref}")
            raise ImageDecodeError(f"Unknown image reference: {image_ref}")
        return decode_data_url(data_url)

    def __contains__(self, image_ref: object) -> bool:
        return image_ref in self._images

    def __len__(self) -> int:
        return len(self._images)
