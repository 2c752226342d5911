"""Pydantic request/response schemas for the passportkit API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from passportkit.models import CamelModel

ORDER_ID_PATTERN = r"^[A-Za-z0-9-]{10,50}$"
PHOTO_ID_PATTERN = r"^[a-f0-9-]{36}$"


class ImageRequest(BaseModel):
    """A full-fidelity JPEG as a data URL or bare base64."""

    image: str = Field(min_length=1)


class VerifyPaymentRequest(CamelModel):
    order_id: str = Field(alias="orderID", pattern=ORDER_ID_PATTERN)


class StorePhotoResponse(CamelModel):
    photo_id: str = Field(alias="photoId")


class DownloadPhotoRequest(CamelModel):
    photo_id: str = Field(alias="photoId", pattern=PHOTO_ID_PATTERN)
    order_id: str = Field(alias="orderID", pattern=ORDER_ID_PATTERN)


class DownloadPhotoResponse(CamelModel):
    download_url: str = Field(alias="downloadUrl")


class SendEmailRequest(DownloadPhotoRequest):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=254)


class CleanupResponse(BaseModel):
    deleted: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    environment: str
    compliance_enabled: bool
    payments_enabled: bool
    email_enabled: bool


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
