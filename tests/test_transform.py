"""Tests for decoding, the canvas transform and the preview watermark."""

from __future__ import annotations

import io

import numpy as np
import pytest
from PIL import Image, ImageChops

from passportkit.errors import DecodeError, ValidationError
from passportkit.imaging.transform import (
    TARGET_HEIGHT,
    TARGET_WIDTH,
    CropRegion,
    RenderedOutput,
    SourceImage,
    add_watermark,
    canvas_matrix,
    decode_image,
    default_crop,
    normalize_rotation,
    render_crop,
    render_outputs,
)

RED = (255, 0, 0)
BLUE = (0, 0, 255)


def _split_source(width: int = 400, height: int = 400) -> SourceImage:
    """Left half red, right half blue."""
    image = Image.new("RGB", (width, height), RED)
    image.paste(BLUE, (width // 2, 0, width, height))
    return SourceImage(image=image)


def _close_to(pixel: tuple[int, ...], expected: tuple[int, int, int], tolerance: int = 12) -> bool:
    return all(abs(a - b) <= tolerance for a, b in zip(pixel, expected))


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


class TestDecodeImage:
    def test_decodes_jpeg(self, photo_bytes: bytes) -> None:
        source = decode_image(photo_bytes)
        assert (source.width, source.height) == (2000, 2667)
        assert source.image.mode == "RGB"

    def test_garbage_raises(self) -> None:
        with pytest.raises(DecodeError):
            decode_image(b"definitely not an image")

    def test_empty_raises(self) -> None:
        with pytest.raises(DecodeError):
            decode_image(b"")

    def test_applies_exif_orientation(self) -> None:
        exif = Image.Exif()
        exif[0x0112] = 6  # rotate 90 CW on display
        buffer = io.BytesIO()
        Image.new("RGB", (40, 20), RED).save(buffer, format="JPEG", exif=exif)

        source = decode_image(buffer.getvalue())
        assert (source.width, source.height) == (20, 40)

    def test_png_is_converted_to_rgb(self) -> None:
        buffer = io.BytesIO()
        Image.new("RGBA", (30, 40), (10, 20, 30, 128)).save(buffer, format="PNG")
        assert decode_image(buffer.getvalue()).image.mode == "RGB"


# ---------------------------------------------------------------------------
# Crop geometry
# ---------------------------------------------------------------------------


class TestCropRegion:
    def test_zero_width_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CropRegion(x=0, y=0, width=0, height=100)

    def test_negative_height_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CropRegion(x=0, y=0, width=100, height=-1)

    def test_center(self) -> None:
        assert CropRegion(x=100, y=100, width=1500, height=2000).center == (850, 1100)


class TestDefaultCrop:
    def test_portrait_uses_full_width(self) -> None:
        region = default_crop(2000, 2667)
        assert region.width == 2000
        assert region.height == pytest.approx(2000 * 4 / 3)
        assert region.x == 0

    def test_landscape_uses_full_height(self) -> None:
        region = default_crop(4000, 3000)
        assert region.height == 3000
        assert region.width == 2250
        assert region.x == 875
        assert region.y == 0


class TestNormalizeRotation:
    @pytest.mark.parametrize(
        ("degrees", "expected"),
        [(0, 0), (45, 45), (190, -170), (-190, 170), (360, 0), (725, 5), (180, 180)],
    )
    def test_folds_into_range(self, degrees: float, expected: float) -> None:
        assert normalize_rotation(degrees) == pytest.approx(expected)


class TestCanvasMatrix:
    def test_crop_centre_lands_on_canvas_centre(self) -> None:
        region = CropRegion(x=100, y=100, width=1500, height=2000, rotation=37)
        mapped = canvas_matrix(region) @ np.array([850.0, 1100.0, 1.0])
        assert mapped[:2] == pytest.approx([TARGET_WIDTH / 2, TARGET_HEIGHT / 2])

    def test_unrotated_corners_fill_canvas(self) -> None:
        region = CropRegion(x=100, y=100, width=1500, height=2000)
        matrix = canvas_matrix(region)
        assert (matrix @ np.array([100.0, 100.0, 1.0]))[:2] == pytest.approx([0, 0])
        assert (matrix @ np.array([1600.0, 2100.0, 1.0]))[:2] == pytest.approx([TARGET_WIDTH, TARGET_HEIGHT])

    def test_axes_scale_independently(self) -> None:
        region = CropRegion(x=0, y=0, width=200, height=100)
        matrix = canvas_matrix(region, (100, 100))
        assert matrix[0, 0] == pytest.approx(0.5)
        assert matrix[1, 1] == pytest.approx(1.0)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestRenderCrop:
    def test_output_always_target_size(self, source_photo: SourceImage) -> None:
        for region in (
            CropRegion(x=0, y=0, width=300, height=400),
            CropRegion(x=500, y=300, width=1200, height=1600, rotation=15),
            CropRegion(x=-50, y=-50, width=2100, height=2800, rotation=-90),
        ):
            assert render_crop(source_photo, region).size == (TARGET_WIDTH, TARGET_HEIGHT)

    def test_unrotated_keeps_sides(self) -> None:
        canvas = render_crop(_split_source(), CropRegion(x=0, y=0, width=400, height=400), (300, 400))
        assert _close_to(canvas.getpixel((40, 200)), RED)
        assert _close_to(canvas.getpixel((260, 200)), BLUE)

    def test_half_turn_swaps_sides(self) -> None:
        region = CropRegion(x=0, y=0, width=400, height=400, rotation=180)
        canvas = render_crop(_split_source(), region, (300, 400))
        assert _close_to(canvas.getpixel((40, 200)), BLUE)
        assert _close_to(canvas.getpixel((260, 200)), RED)

    def test_outside_source_is_black(self) -> None:
        region = CropRegion(x=-400, y=0, width=800, height=400)
        canvas = render_crop(_split_source(), region, (300, 400))
        assert canvas.getpixel((10, 200)) == (0, 0, 0)
        assert _close_to(canvas.getpixel((200, 200)), RED)

    def test_anisotropic_crop_fills_canvas(self) -> None:
        region = CropRegion(x=0, y=0, width=400, height=200)
        canvas = render_crop(_split_source(), region, (300, 400))
        assert canvas.size == (300, 400)
        assert _close_to(canvas.getpixel((10, 390)), RED)
        assert _close_to(canvas.getpixel((290, 390)), BLUE)


class TestWatermark:
    def test_full_canvas_is_untouched(self) -> None:
        black = Image.new("RGB", (600, 800), (0, 0, 0))
        preview = add_watermark(black)
        assert black.getextrema() == ((0, 0), (0, 0), (0, 0))
        assert preview.size == black.size
        assert preview.mode == "RGB"

    def test_mark_is_drawn_near_centre(self) -> None:
        black = Image.new("RGB", (600, 800), (0, 0, 0))
        bbox = ImageChops.difference(black, add_watermark(black)).getbbox()
        assert bbox is not None
        left, top, right, bottom = bbox
        assert left < 300 < right
        assert top < 400 < bottom

    def test_mark_is_faint(self) -> None:
        preview = add_watermark(Image.new("RGB", (600, 800), (0, 0, 0)))
        brightest = max(high for _, high in preview.getextrema())
        assert 0 < brightest < 60


class TestRenderOutputs:
    def test_full_and_preview_share_geometry(self, rendered_photo: RenderedOutput) -> None:
        assert rendered_photo.full.size == (TARGET_WIDTH, TARGET_HEIGHT)
        assert rendered_photo.preview.size == (TARGET_WIDTH, TARGET_HEIGHT)

    def test_preview_differs_from_full(self, rendered_photo: RenderedOutput) -> None:
        assert ImageChops.difference(rendered_photo.full, rendered_photo.preview).getbbox() is not None

    def test_custom_size(self, source_photo: SourceImage) -> None:
        rendered = render_outputs(source_photo, CropRegion(x=0, y=0, width=600, height=800), (300, 400))
        assert rendered.full.size == (300, 400)
        assert rendered.preview.size == (300, 400)
