"""Crop/rotate/scale transform onto the fixed passport canvas.

The canvas transform is the composition

    translate(canvas centre) . rotate(angle) . scale(tw / cw, th / ch) . translate(-crop centre)

so the crop centre lands on the canvas centre, the crop is rotated about its
own centre (clockwise positive, y axis pointing down) and its width and
height are stretched independently to fill the canvas. Keeping the
selection at 3:4 is the caller's job.
"""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError

from passportkit.errors import DecodeError, RenderError, ValidationError

logger = logging.getLogger(__name__)

TARGET_WIDTH: int = 1500
TARGET_HEIGHT: int = 2000
PASSPORT_ASPECT: float = 3 / 4

WATERMARK_TEXT = "PREVIEW"
WATERMARK_FONT_SIZE = 100
WATERMARK_COLOR = (0x88, 0x88, 0x88)
WATERMARK_OPACITY = 0.15
WATERMARK_ANGLE = 30.0  # counter-clockwise
WATERMARK_OFFSET = 100


@dataclass(frozen=True)
class SourceImage:
    """A decoded upload, RGB and already EXIF-oriented."""

    image: Image.Image

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


@dataclass(frozen=True)
class CropRegion:
    """Crop rectangle in source pixel coordinates plus rotation in degrees."""

    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValidationError(f"Crop must have a positive size, got {self.width}x{self.height}")

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2


@dataclass(frozen=True)
class RenderedOutput:
    """The clean deliverable raster and its watermarked preview twin."""

    full: Image.Image
    preview: Image.Image


def normalize_rotation(degrees: float) -> float:
    """Fold an angle into [-180, 180]."""
    folded = math.fmod(degrees, 360.0)
    if folded > 180.0:
        folded -= 360.0
    elif folded < -180.0:
        folded += 360.0
    return folded


def decode_image(data: bytes) -> SourceImage:
    """Decode raw upload bytes into an RGB source image.

    Raises:
        DecodeError: If the bytes are not a readable image.
    """
    try:
        with Image.open(io.BytesIO(data)) as opened:
            opened.load()
            oriented = ImageOps.exif_transpose(opened)
            image = oriented.convert("RGB")
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Could not decode image: {exc}") from exc

    logger.info("Decoded source image %dx%d", image.width, image.height)
    return SourceImage(image=image)


def default_crop(width: int, height: int, aspect: float = PASSPORT_ASPECT) -> CropRegion:
    """Return the largest centred crop with the given width/height ratio."""
    crop_w = float(width)
    crop_h = crop_w / aspect
    if crop_h > height:
        crop_h = float(height)
        crop_w = min(crop_h * aspect, float(width))
    return CropRegion(
        x=(width - crop_w) / 2,
        y=(height - crop_h) / 2,
        width=crop_w,
        height=crop_h,
    )


def canvas_matrix(
    region: CropRegion,
    size: tuple[int, int] = (TARGET_WIDTH, TARGET_HEIGHT),
) -> np.ndarray:
    """Return the 3x3 matrix mapping source coordinates to canvas coordinates."""
    target_w, target_h = size
    center_x, center_y = region.center
    theta = math.radians(region.rotation)
    cos_t, sin_t = math.cos(theta), math.sin(theta)

    to_canvas_center = np.array([[1.0, 0.0, target_w / 2], [0.0, 1.0, target_h / 2], [0.0, 0.0, 1.0]])
    rotate = np.array([[cos_t, -sin_t, 0.0], [sin_t, cos_t, 0.0], [0.0, 0.0, 1.0]])
    scale = np.array([[target_w / region.width, 0.0, 0.0], [0.0, target_h / region.height, 0.0], [0.0, 0.0, 1.0]])
    from_crop_center = np.array([[1.0, 0.0, -center_x], [0.0, 1.0, -center_y], [0.0, 0.0, 1.0]])
    return to_canvas_center @ rotate @ scale @ from_crop_center


def render_crop(
    source: SourceImage,
    region: CropRegion,
    size: tuple[int, int] = (TARGET_WIDTH, TARGET_HEIGHT),
) -> Image.Image:
    """Render the crop region onto a canvas of exactly ``size`` pixels.

    Canvas pixels that fall outside the source are black.

    Raises:
        RenderError: If the canvas cannot be created or transformed.
    """
    try:
        # Pillow wants the output -> input mapping.
        inverse = np.linalg.inv(canvas_matrix(region, size))
        coefficients = tuple(float(v) for v in inverse[:2].ravel())
        return source.image.transform(
            size,
            Image.Transform.AFFINE,
            coefficients,
            resample=Image.Resampling.BICUBIC,
            fillcolor=(0, 0, 0),
        )
    except (np.linalg.LinAlgError, ValueError, OSError, MemoryError) as exc:
        raise RenderError(f"Could not render crop: {exc}") from exc


def _watermark_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    try:
        return ImageFont.truetype("DejaVuSans-Bold.ttf", size)
    except OSError:
        return ImageFont.load_default(size=size)


def add_watermark(image: Image.Image, text: str = WATERMARK_TEXT) -> Image.Image:
    """Return a copy of ``image`` with the diagonal preview mark drawn twice."""
    width, height = image.size
    center = (width / 2, height / 2)

    layer = Image.new("RGBA", image.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    font = _watermark_font(WATERMARK_FONT_SIZE)
    fill = (*WATERMARK_COLOR, round(255 * WATERMARK_OPACITY))
    for offset in (-WATERMARK_OFFSET, WATERMARK_OFFSET):
        draw.text((center[0], center[1] + offset), text, font=font, fill=fill, anchor="mm")
    layer = layer.rotate(WATERMARK_ANGLE, resample=Image.Resampling.BICUBIC, center=center)

    return Image.alpha_composite(image.convert("RGBA"), layer).convert("RGB")


def render_outputs(
    source: SourceImage,
    region: CropRegion,
    size: tuple[int, int] = (TARGET_WIDTH, TARGET_HEIGHT),
) -> RenderedOutput:
    """Render the clean canvas and the watermarked preview for one crop."""
    full = render_crop(source, region, size)
    try:
        preview = add_watermark(full)
    except (ValueError, OSError, MemoryError) as exc:
        raise RenderError(f"Could not draw preview mark: {exc}") from exc
    return RenderedOutput(full=full, preview=preview)
