"""Shared fixtures: synthetic photos and their rendered/encoded forms."""

from __future__ import annotations

import io

import numpy as np
import pytest
from PIL import Image

from passportkit.imaging.encoding import PackagedOutput, package_outputs
from passportkit.imaging.transform import CropRegion, RenderedOutput, SourceImage, decode_image, render_outputs

# Crop that fits a 2000x2667 upload with a 100px margin; already 3:4.
PASSPORT_CROP = CropRegion(x=100, y=100, width=1500, height=2000)


def make_noisy_photo(width: int, height: int, seed: int = 0) -> Image.Image:
    """Gradient plus noise so JPEG sizes look like a real photo, not a flat card."""
    rng = np.random.default_rng(seed)
    xs = np.linspace(0, 255, width)[None, :, None]
    ys = np.linspace(0, 255, height)[:, None, None]
    base = np.broadcast_to((xs + ys) / 2, (height, width, 3))
    noise = rng.integers(-40, 40, size=(height, width, 3))
    pixels = np.clip(base + noise, 0, 255).astype(np.uint8)
    return Image.fromarray(pixels)


def jpeg_bytes(image: Image.Image, quality: int = 95) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


@pytest.fixture(scope="session")
def photo_bytes() -> bytes:
    """A 2000x2667 JPEG upload."""
    return jpeg_bytes(make_noisy_photo(2000, 2667))


@pytest.fixture(scope="session")
def small_photo_bytes() -> bytes:
    """A 600x800 JPEG upload for tests that do not care about NZ size limits."""
    return jpeg_bytes(make_noisy_photo(600, 800, seed=1))


@pytest.fixture(scope="session")
def source_photo(photo_bytes: bytes) -> SourceImage:
    return decode_image(photo_bytes)


@pytest.fixture(scope="session")
def rendered_photo(source_photo: SourceImage) -> RenderedOutput:
    return render_outputs(source_photo, PASSPORT_CROP)


@pytest.fixture(scope="session")
def packaged_photo(rendered_photo: RenderedOutput) -> PackagedOutput:
    return package_outputs(rendered_photo)
