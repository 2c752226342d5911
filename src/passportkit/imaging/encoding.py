"""JPEG encoding and data-URL packaging of rendered canvases."""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from passportkit.errors import EncodeError, ValidationError
from passportkit.imaging.technical import JPEG_FORMAT

if TYPE_CHECKING:
    from PIL import Image

    from passportkit.imaging.transform import RenderedOutput

logger = logging.getLogger(__name__)

FULL_QUALITY: int = 95
PREVIEW_QUALITY: int = 70


@dataclass(frozen=True)
class EncodedImage:
    """Compressed bytes of one canvas and their transport form."""

    data: bytes
    width: int
    height: int
    format: str = JPEG_FORMAT

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def data_url(self) -> str:
        return f"data:{self.format};base64,{base64.b64encode(self.data).decode('ascii')}"


@dataclass(frozen=True)
class PackagedOutput:
    """Encoded full-fidelity deliverable and encoded preview."""

    full: EncodedImage
    preview: EncodedImage


def encode_jpeg(image: Image.Image, quality: int) -> EncodedImage:
    """Compress a canvas to JPEG.

    Raises:
        EncodeError: If the canvas is empty or the encoder fails.
    """
    if image.width == 0 or image.height == 0:
        raise EncodeError("Canvas is empty")

    buffer = io.BytesIO()
    try:
        image.convert("RGB").save(buffer, format="JPEG", quality=quality)
    except (OSError, ValueError) as exc:
        raise EncodeError(f"JPEG encoding failed: {exc}") from exc

    data = buffer.getvalue()
    if not data:
        raise EncodeError("Canvas is empty")
    return EncodedImage(data=data, width=image.width, height=image.height)


def package_outputs(
    rendered: RenderedOutput,
    full_quality: int = FULL_QUALITY,
    preview_quality: int = PREVIEW_QUALITY,
) -> PackagedOutput:
    """Encode the full raster and the preview at their respective qualities."""
    full = encode_jpeg(rendered.full, full_quality)
    preview = encode_jpeg(rendered.preview, preview_quality)
    logger.info(
        "Encoded %dx%d photo: full=%.0fKB preview=%.0fKB",
        full.width,
        full.height,
        full.size_bytes / 1024,
        preview.size_bytes / 1024,
    )
    return PackagedOutput(full=full, preview=preview)


def strip_data_url(text: str) -> str:
    """Drop a ``data:...;base64,`` prefix if present."""
    return text.split(",", 1)[1] if "," in text else text


def decode_data_url(text: str) -> bytes:
    """Decode a data URL or bare base64 string into bytes.

    Raises:
        ValidationError: If the payload is not valid base64.
    """
    try:
        return base64.b64decode(strip_data_url(text), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Image payload is not valid base64") from exc
