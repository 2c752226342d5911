"""Tests for JPEG encoding and data-URL helpers."""

from __future__ import annotations

import base64

import pytest
from PIL import Image

from passportkit.errors import EncodeError, ValidationError
from passportkit.imaging.encoding import (
    EncodedImage,
    PackagedOutput,
    decode_data_url,
    encode_jpeg,
    strip_data_url,
)
from passportkit.imaging.technical import JPEG_FORMAT


class TestEncodeJpeg:
    def test_produces_jpeg(self) -> None:
        encoded = encode_jpeg(Image.new("RGB", (30, 40), (200, 100, 50)), 95)
        assert encoded.data.startswith(b"\xff\xd8")
        assert (encoded.width, encoded.height) == (30, 40)
        assert encoded.format == JPEG_FORMAT

    def test_empty_canvas_raises(self) -> None:
        with pytest.raises(EncodeError):
            encode_jpeg(Image.new("RGB", (0, 0)), 95)

    def test_rgba_is_flattened(self) -> None:
        encoded = encode_jpeg(Image.new("RGBA", (10, 10), (0, 0, 0, 0)), 70)
        assert encoded.size_bytes > 0


class TestPackageOutputs:
    def test_preview_is_smaller_than_full(self, packaged_photo: PackagedOutput) -> None:
        assert packaged_photo.preview.size_bytes < packaged_photo.full.size_bytes

    def test_both_keep_target_dimensions(self, packaged_photo: PackagedOutput) -> None:
        assert (packaged_photo.full.width, packaged_photo.full.height) == (1500, 2000)
        assert (packaged_photo.preview.width, packaged_photo.preview.height) == (1500, 2000)

    def test_full_is_a_plausible_passport_file(self, packaged_photo: PackagedOutput) -> None:
        assert 250 <= packaged_photo.full.size_bytes / 1024 <= 5120


class TestDataUrls:
    def test_data_url_round_trip(self) -> None:
        encoded = EncodedImage(data=b"\xff\xd8hello", width=1, height=1)
        assert encoded.data_url.startswith("data:image/jpeg;base64,")
        assert decode_data_url(encoded.data_url) == b"\xff\xd8hello"

    def test_bare_base64_accepted(self) -> None:
        assert decode_data_url(base64.b64encode(b"abc").decode()) == b"abc"

    def test_strip_leaves_bare_payload_alone(self) -> None:
        assert strip_data_url("QUJD") == "QUJD"
        assert strip_data_url("data:image/jpeg;base64,QUJD") == "QUJD"

    def test_invalid_base64_raises(self) -> None:
        with pytest.raises(ValidationError):
            decode_data_url("data:image/jpeg;base64,!!!not base64!!!")

    def test_validation_error_is_a_value_error(self) -> None:
        with pytest.raises(ValueError):
            decode_data_url("%%%")
