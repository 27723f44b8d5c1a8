"""Image utilities for eye photo uploads.

Decodes base64 / data-URL payloads, checks upload sizes and normalizes
photos to a bounded JPEG using Pillow before they are forwarded to a
vision provider.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------
# Constants
# ------------------------------------------------------------------

IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif", "image/bmp", "image/tiff", "image/heic"}
IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "gif", "bmp", "tiff", "heic"}

DEFAULT_MAX_DIMENSION = 1600
DEFAULT_JPEG_QUALITY = 80


class ImageDecodeError(ValueError):
    """Raised when an uploaded image payload cannot be used."""


@dataclass
class PreparedImage:
    """An image ready to be sent to a provider."""

    content: bytes
    content_type: str
    original_size: int
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def base64(self) -> str:
        return base64.b64encode(self.content).decode("ascii")


def is_image(content_type: Optional[str], filename: Optional[str]) -> bool:
    """Return True if the file looks like an image we can forward."""
    if content_type and content_type.lower().split(";")[0].strip() in IMAGE_TYPES:
        return True
    if filename:
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        return ext in IMAGE_EXTENSIONS
    return False


def strip_data_url(data: str) -> tuple[str, Optional[str]]:
    """Split ``data:<mime>;base64,<payload>`` into (payload, mime)."""
    if data.startswith("data:"):
        header, _, payload = data.partition(",")
        mime = header[5:].split(";", 1)[0] or None
        return payload, mime
    return data, None


def decode_base64_image(data: str) -> tuple[bytes, Optional[str]]:
    """Decode a raw base64 string or data URL into bytes.

    Raises ``ImageDecodeError`` for empty or malformed payloads.
    """
    if not isinstance(data, str) or not data.strip():
        raise ImageDecodeError("No image provided")
    payload, mime = strip_data_url(data.strip())
    payload = "".join(payload.split())
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageDecodeError("Image is not valid base64 data") from exc
    if not raw:
        raise ImageDecodeError("No image provided")
    return raw, mime


def check_upload_size(size: int, *, index: int, min_bytes: int, max_bytes: int) -> None:
    if size > max_bytes:
        raise ImageDecodeError(f"Image {index} is too large (max {max_bytes // (1024 * 1024)}MB)")
    if size < min_bytes:
        raise ImageDecodeError(f"Image {index} appears to be too small or corrupted")


def prepare_image(
    content: bytes,
    *,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    quality: int = DEFAULT_JPEG_QUALITY,
    filename: Optional[str] = None,
) -> PreparedImage:
    """Auto-orient, downscale to *max_dimension* and re-encode as JPEG.

    Bytes Pillow cannot read are passed through unchanged so the provider
    can make the final call on them.
    """
    try:
        return _reencode(content, max_dimension=max_dimension, quality=quality, filename=filename)
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        logger.warning("Could not decode image %s (%s), forwarding original bytes", filename or "<inline>", exc)
        return PreparedImage(content=content, content_type="image/jpeg", original_size=len(content))


def _reencode(content: bytes, *, max_dimension: int, quality: int, filename: Optional[str]) -> PreparedImage:
    img = Image.open(io.BytesIO(content))
    source_format = img.format
    orientation = img.getexif().get(0x0112, 1)
    img = ImageOps.exif_transpose(img)

    width, height = img.size
    if source_format == "JPEG" and orientation == 1 and max(width, height) <= max_dimension:
        return PreparedImage(
            content=content,
            content_type="image/jpeg",
            original_size=len(content),
            width=width,
            height=height,
        )

    if max(width, height) > max_dimension:
        img.thumbnail((max_dimension, max_dimension), Image.LANCZOS)

    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality, optimize=True)
    encoded = buf.getvalue()
    logger.debug(
        "Prepared image %s: %dx%d -> %dx%d, %d -> %d bytes",
        filename or "<inline>",
        width,
        height,
        img.width,
        img.height,
        len(content),
        len(encoded),
    )
    return PreparedImage(
        content=encoded,
        content_type="image/jpeg",
        original_size=len(content),
        width=img.width,
        height=img.height,
    )
