"""PayPal REST glue: order status lookup and webhook signature verification."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from passportkit.errors import CollaboratorError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from passportkit.config import Settings

logger = logging.getLogger(__name__)

LIVE_BASE_URL = "https://api-m.paypal.com"
SANDBOX_BASE_URL = "https://api-m.sandbox.paypal.com"

ORDER_COMPLETED = "COMPLETED"

WEBHOOK_HEADERS = {
    "auth_algo": "paypal-auth-algo",
    "cert_url": "paypal-cert-url",
    "transmission_id": "paypal-transmission-id",
    "transmission_sig": "paypal-transmission-sig",
    "transmission_time": "paypal-transmission-time",
}


class PayPalClient:
    """Thin async client over the PayPal REST API (client-credentials auth)."""

    def __init__(self, settings: Settings, http: httpx.AsyncClient | None = None) -> None:
        if not settings.payments_configured:
            raise RuntimeError("PayPal requires PASSPORTKIT_PAYPAL_CLIENT_ID and PASSPORTKIT_PAYPAL_CLIENT_SECRET")
        self._client_id = settings.paypal_client_id or ""
        self._client_secret = settings.paypal_client_secret or ""
        self._webhook_id = settings.paypal_webhook_id
        base_url = LIVE_BASE_URL if settings.paypal_environment == "live" else SANDBOX_BASE_URL
        self._http = http or httpx.AsyncClient(base_url=base_url, timeout=15.0)

    async def _access_token(self) -> str:
        response = await self._http.post(
            "/v1/oauth2/token",
            auth=(self._client_id, self._client_secret),
            headers={"Accept": "application/json"},
            data={"grant_type": "client_credentials"},
        )
        token = _json_body(response).get("access_token")
        if not token:
            logger.error("Failed to get PayPal access token (HTTP %s)", response.status_code)
            raise CollaboratorError("Payment service error")
        return str(token)

    async def order_status(self, order_id: str) -> str | None:
        """Return the PayPal status of an order, e.g. ``COMPLETED``.

        Raises:
            CollaboratorError: If PayPal cannot be reached or refuses the credentials.
        """
        try:
            token = await self._access_token()
            response = await self._http.get(
                f"/v2/checkout/orders/{order_id}",
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            raise CollaboratorError(f"PayPal request failed: {exc}") from exc
        status = _json_body(response).get("status")
        return str(status) if status is not None else None

    async def is_order_completed(self, order_id: str) -> bool:
        return await self.order_status(order_id) == ORDER_COMPLETED

    async def verify_webhook(self, headers: Mapping[str, str], event: dict[str, Any]) -> bool:
        """Ask PayPal whether a webhook delivery carries a valid signature."""
        if not self._webhook_id:
            raise RuntimeError("PASSPORTKIT_PAYPAL_WEBHOOK_ID is not set")
        payload: dict[str, Any] = {key: headers.get(header) for key, header in WEBHOOK_HEADERS.items()}
        payload["webhook_id"] = self._webhook_id
        payload["webhook_event"] = event
        try:
            token = await self._access_token()
            response = await self._http.post(
                "/v1/notifications/verify-webhook-signature",
                headers={"Authorization": f"Bearer {token}"},
                json=payload,
            )
        except httpx.HTTPError as exc:
            raise CollaboratorError(f"PayPal request failed: {exc}") from exc
        verification = _json_body(response).get("verification_status")
        if verification != "SUCCESS":
            logger.error("Webhook signature verification failed: %s", verification)
            return False
        return True

    async def aclose(self) -> None:
        await self._http.aclose()


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
