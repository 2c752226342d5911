"""Environment-based configuration for passportkit."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from passportkit.imaging.technical import PhotoRequirements


class Settings(BaseSettings):
    """Application settings loaded from PASSPORTKIT_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PASSPORTKIT_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080
    environment: Literal["development", "production"] = "development"

    # CORS
    allowed_origins: list[str] = [
        "https://nzpassport.photos",
        "https://www.nzpassport.photos",
        "http://localhost:3000",
    ]
    allowed_origin_regex: str | None = r"^https://nz-passport-photos[a-z0-9-]*\.vercel\.app$"

    # Output raster (3:4)
    target_width: int = Field(default=1500, ge=1)
    target_height: int = Field(default=2000, ge=1)

    # Jurisdiction rules (NZ digital passport photo)
    min_file_kb: float = Field(default=250, ge=0)
    max_file_kb: float = Field(default=5120, ge=0)
    min_width: int = Field(default=900, ge=1)
    max_width: int = Field(default=4500, ge=1)
    min_height: int = Field(default=1200, ge=1)
    max_height: int = Field(default=6000, ge=1)
    required_format: str = "image/jpeg"

    # JPEG quality (Pillow 1-100 scale)
    full_quality: int = Field(default=95, ge=1, le=100)
    preview_quality: int = Field(default=70, ge=1, le=100)

    # AI evaluator (None = compliance endpoint disabled)
    gemini_api_key: str | None = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    gemini_model: str = "gemini-3-flash-preview"

    # Payments
    paypal_client_id: str | None = None
    paypal_client_secret: str | None = None
    paypal_environment: Literal["sandbox", "live"] = "sandbox"
    paypal_webhook_id: str | None = None
    price: str = "5.00"
    currency: str = "NZD"
    order_description: str = "NZ Passport Photo - Compliance Check & Download"

    # Photo storage
    storage_dir: str = "./var/photos"
    public_base_url: str = "http://localhost:8080"
    signing_key: str = "change-me"
    download_url_ttl: int = Field(default=3600, ge=1)
    photo_max_age: int = Field(default=86_400, ge=1)

    # Email (None = email delivery disabled)
    resend_api_key: str | None = None
    email_from: str = "NZ Passport Photos <photos@nzpassport.photos>"

    # Cron
    cron_secret: str | None = None

    # Request guards
    rate_limit_window: float = Field(default=60.0, gt=0)
    compliance_rate_limit: int = Field(default=10, ge=1)
    payment_rate_limit: int = Field(default=5, ge=1)
    store_rate_limit: int = Field(default=5, ge=1)
    download_rate_limit: int = Field(default=10, ge=1)
    max_image_chars: int = Field(default=15_000_000, ge=1)

    @property
    def payments_configured(self) -> bool:
        return bool(self.paypal_client_id and self.paypal_client_secret)

    def photo_requirements(self) -> PhotoRequirements:
        """Return the technical photo rules for the configured jurisdiction."""
        return PhotoRequirements(
            min_file_kb=self.min_file_kb,
            max_file_kb=self.max_file_kb,
            min_width=self.min_width,
            max_width=self.max_width,
            min_height=self.min_height,
            max_height=self.max_height,
            required_format=self.required_format,
        )


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
