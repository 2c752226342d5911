"""Download-link email delivery through the Resend HTTP API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from passportkit.errors import CollaboratorError

if TYPE_CHECKING:
    from passportkit.config import Settings

logger = logging.getLogger(__name__)

RESEND_BASE_URL = "https://api.resend.com"

SUBJECT = "Your NZ passport photo is ready"


class DownloadMailer:
    """Sends the signed download link to the buyer."""

    def __init__(self, settings: Settings, http: httpx.AsyncClient | None = None) -> None:
        if not settings.resend_api_key:
            raise RuntimeError("Email delivery requires PASSPORTKIT_RESEND_API_KEY")
        self._sender = settings.email_from
        self._http = http or httpx.AsyncClient(
            base_url=RESEND_BASE_URL,
            headers={"Authorization": f"Bearer {settings.resend_api_key}"},
            timeout=15.0,
        )

    async def send_download_link(self, email: str, download_url: str) -> None:
        """Raises CollaboratorError if the message was not accepted."""
        html = (
            "<p>Thanks for your purchase.</p>"
            f'<p><a href="{download_url}">Download your passport photo</a></p>'
            "<p>The link expires soon, so save the photo to your device.</p>"
        )
        try:
            response = await self._http.post(
                "/emails",
                json={"from": self._sender, "to": [email], "subject": SUBJECT, "html": html},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Email delivery failed: %s", exc)
            raise CollaboratorError("Failed to send email") from exc
        logger.info("Sent download link email")

    async def aclose(self) -> None:
        await self._http.aclose()
