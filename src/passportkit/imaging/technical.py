"""Technical validation of an encoded photo against jurisdiction rules."""

from __future__ import annotations

from dataclasses import dataclass

JPEG_FORMAT = "image/jpeg"


@dataclass(frozen=True)
class PhotoRequirements:
    """Size, dimension and format limits for a digital passport photo.

    Defaults follow the NZ DIA digital photo rules.
    """

    min_file_kb: float = 250
    max_file_kb: float = 5120
    min_width: int = 900
    max_width: int = 4500
    min_height: int = 1200
    max_height: int = 6000
    required_format: str = JPEG_FORMAT


@dataclass(frozen=True)
class TechnicalResult:
    """Verdicts for one encoded photo. KB means bytes / 1024."""

    file_size_kb: float
    width: int
    height: int
    format: str
    size_valid: bool
    dimensions_valid: bool
    format_valid: bool

    @property
    def passed(self) -> bool:
        return self.size_valid and self.dimensions_valid and self.format_valid


def validate_technical(
    size_bytes: int,
    width: int,
    height: int,
    image_format: str,
    requirements: PhotoRequirements | None = None,
) -> TechnicalResult:
    """Check byte size, pixel dimensions and format. Bounds are inclusive."""
    rules = requirements or PhotoRequirements()
    file_size_kb = size_bytes / 1024
    return TechnicalResult(
        file_size_kb=file_size_kb,
        width=width,
        height=height,
        format=image_format,
        size_valid=rules.min_file_kb <= file_size_kb <= rules.max_file_kb,
        dimensions_valid=(
            rules.min_width <= width <= rules.max_width and rules.min_height <= height <= rules.max_height
        ),
        format_valid=image_format == rules.required_format,
    )
