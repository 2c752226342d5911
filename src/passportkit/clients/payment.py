"""Client side of payment: provider checkout and server-side verification."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from passportkit.models import PaymentResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderRequest:
    """What the payment button charges for."""

    amount: str
    currency: str
    description: str


class PaymentCheckout(Protocol):
    """Protocol for the payment provider's checkout SDK."""

    async def load(self) -> None:
        """Load the provider SDK.

        Raises:
            CollaboratorError: If the SDK cannot be loaded.
        """
        ...

    def render_button(self, order: OrderRequest) -> None:
        """Show the pay button for ``order``. Called at most once per Payment visit."""
        ...


class PaymentVerifier(Protocol):
    """Protocol for server-side order verification."""

    async def verify(self, order_id: str) -> PaymentResult:
        """Return whether the captured order is completed."""
        ...


class HttpPaymentVerifier:
    """Calls ``POST /api/v1/verify-payment``; failures become ``verified=False``."""

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def verify(self, order_id: str) -> PaymentResult:
        try:
            response = await self._http.post("/api/v1/verify-payment", json={"orderID": order_id})
        except httpx.HTTPError as exc:
            logger.error("Payment verification failed: %s", exc)
            return PaymentResult(verified=False, error="Failed to verify payment. Please contact support.")

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not response.is_success:
            message = body.get("error") or body.get("detail") if isinstance(body, dict) else None
            logger.error("Payment verification failed: HTTP %s", response.status_code)
            return PaymentResult(verified=False, error=message or f"Server error: {response.status_code}")

        try:
            return PaymentResult.model_validate(body)
        except PydanticValidationError:
            logger.error("Payment verification returned a malformed body")
            return PaymentResult(verified=False, error="Failed to verify payment. Please contact support.")
