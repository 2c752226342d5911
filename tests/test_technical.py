"""Tests for technical validation of encoded photos."""

from __future__ import annotations

from passportkit.imaging.encoding import PackagedOutput
from passportkit.imaging.technical import JPEG_FORMAT, PhotoRequirements, validate_technical

KB = 1024


class TestFileSize:
    def test_lower_bound_is_inclusive(self) -> None:
        assert validate_technical(250 * KB, 1500, 2000, JPEG_FORMAT).size_valid is True

    def test_one_byte_under_lower_bound_fails(self) -> None:
        assert validate_technical(250 * KB - 1, 1500, 2000, JPEG_FORMAT).size_valid is False

    def test_upper_bound_is_inclusive(self) -> None:
        assert validate_technical(5120 * KB, 1500, 2000, JPEG_FORMAT).size_valid is True

    def test_one_byte_over_upper_bound_fails(self) -> None:
        assert validate_technical(5120 * KB + 1, 1500, 2000, JPEG_FORMAT).size_valid is False

    def test_reports_kilobytes(self) -> None:
        result = validate_technical(512 * KB, 1500, 2000, JPEG_FORMAT)
        assert result.file_size_kb == 512


class TestDimensions:
    def test_minimum_dimensions_pass(self) -> None:
        assert validate_technical(300 * KB, 900, 1200, JPEG_FORMAT).dimensions_valid is True

    def test_width_below_minimum_fails(self) -> None:
        assert validate_technical(300 * KB, 899, 1200, JPEG_FORMAT).dimensions_valid is False

    def test_height_below_minimum_fails(self) -> None:
        assert validate_technical(300 * KB, 900, 1199, JPEG_FORMAT).dimensions_valid is False

    def test_maximum_dimensions_pass(self) -> None:
        assert validate_technical(300 * KB, 4500, 6000, JPEG_FORMAT).dimensions_valid is True

    def test_width_above_maximum_fails(self) -> None:
        assert validate_technical(300 * KB, 4501, 6000, JPEG_FORMAT).dimensions_valid is False


class TestFormat:
    def test_non_jpeg_fails(self) -> None:
        result = validate_technical(300 * KB, 1500, 2000, "image/png")
        assert result.format_valid is False
        assert result.passed is False

    def test_all_checks_pass(self) -> None:
        assert validate_technical(300 * KB, 1500, 2000, JPEG_FORMAT).passed is True


class TestCustomRequirements:
    def test_other_jurisdiction_limits(self) -> None:
        rules = PhotoRequirements(min_file_kb=50, max_file_kb=100, min_width=600, min_height=600)
        result = validate_technical(60 * KB, 600, 600, JPEG_FORMAT, rules)
        assert result.passed is True

    def test_size_invalid_does_not_touch_other_verdicts(self) -> None:
        rules = PhotoRequirements(min_file_kb=10_000)
        result = validate_technical(300 * KB, 1500, 2000, JPEG_FORMAT, rules)
        assert result.size_valid is False
        assert result.dimensions_valid is True
        assert result.format_valid is True


class TestEncodedPhoto:
    def test_default_pipeline_output_meets_nz_rules(self, packaged_photo: PackagedOutput) -> None:
        full = packaged_photo.full
        result = validate_technical(full.size_bytes, full.width, full.height, full.format)
        assert result.size_valid is True
        assert result.passed is True
