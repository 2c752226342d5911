"""Client side of pay-then-download delivery: storage, signed links, email."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from passportkit.api.schemas import DownloadPhotoResponse, StorePhotoResponse
from passportkit.errors import CollaboratorError
from passportkit.models import EmailResult

logger = logging.getLogger(__name__)


class PhotoDelivery(Protocol):
    """Protocol for durable storage and release of the paid photo."""

    async def store_photo(self, image_data_url: str) -> str:
        """Store the full-fidelity photo and return its photo id."""
        ...

    async def download_url(self, photo_id: str, order_id: str) -> str:
        """Return a time-limited link, gated on a completed order."""
        ...

    async def send_download_email(self, email: str, photo_id: str, order_id: str) -> EmailResult:
        """Email the download link to the buyer."""
        ...


class HttpPhotoDelivery:
    """Talks to the store/download/email endpoints. Failures raise CollaboratorError."""

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._http.post(path, json=payload)
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise CollaboratorError(f"{path} failed: {exc}") from exc
        if not isinstance(body, dict):
            raise CollaboratorError(f"{path} returned a malformed body")
        if not response.is_success:
            raise CollaboratorError(str(body.get("detail") or body.get("error") or f"Server error: {response.status_code}"))
        return body

    async def store_photo(self, image_data_url: str) -> str:
        body = await self._post("/api/v1/store-photo", {"image": image_data_url})
        try:
            return StorePhotoResponse.model_validate(body).photo_id
        except PydanticValidationError as exc:
            raise CollaboratorError("store-photo returned a malformed body") from exc

    async def download_url(self, photo_id: str, order_id: str) -> str:
        body = await self._post("/api/v1/download-photo", {"photoId": photo_id, "orderID": order_id})
        try:
            return DownloadPhotoResponse.model_validate(body).download_url
        except PydanticValidationError as exc:
            raise CollaboratorError("download-photo returned a malformed body") from exc

    async def send_download_email(self, email: str, photo_id: str, order_id: str) -> EmailResult:
        body = await self._post(
            "/api/v1/send-download-email",
            {"email": email, "photoId": photo_id, "orderID": order_id},
        )
        try:
            return EmailResult.model_validate(body)
        except PydanticValidationError as exc:
            raise CollaboratorError("send-download-email returned a malformed body") from exc
