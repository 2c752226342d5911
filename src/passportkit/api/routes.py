"""API route definitions."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import FileResponse, JSONResponse

from passportkit.api.middleware import enforce_origin, rate_limit, verify_cron_secret
from passportkit.api.schemas import (
    PHOTO_ID_PATTERN,
    CleanupResponse,
    DownloadPhotoRequest,
    DownloadPhotoResponse,
    ErrorResponse,
    HealthResponse,
    ImageRequest,
    SendEmailRequest,
    StorePhotoResponse,
    VerifyPaymentRequest,
)
from passportkit.errors import CollaboratorError, ValidationError
from passportkit.imaging.encoding import decode_data_url, strip_data_url
from passportkit.models import ComplianceResult, EmailResult, PaymentResult
from passportkit.services.paypal import ORDER_COMPLETED, WEBHOOK_HEADERS

if TYPE_CHECKING:
    from passportkit.config import Settings
    from passportkit.services.compliance_evaluator import ComplianceEvaluator
    from passportkit.services.mailer import DownloadMailer
    from passportkit.services.paypal import PayPalClient
    from passportkit.services.photo_store import LocalPhotoStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")

_public = [Depends(enforce_origin)]

_REQUIRED_WEBHOOK_HEADERS = (
    WEBHOOK_HEADERS["transmission_id"],
    WEBHOOK_HEADERS["transmission_time"],
    WEBHOOK_HEADERS["transmission_sig"],
)


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_evaluator(request: Request) -> ComplianceEvaluator | None:
    evaluator: ComplianceEvaluator | None = request.app.state.evaluator
    return evaluator


def _get_store(request: Request) -> LocalPhotoStore:
    store: LocalPhotoStore = request.app.state.photo_store
    return store


def _get_mailer(request: Request) -> DownloadMailer | None:
    mailer: DownloadMailer | None = request.app.state.mailer
    return mailer


def _require_paypal(request: Request) -> PayPalClient:
    paypal: PayPalClient | None = request.app.state.paypal
    if paypal is None:
        logger.error("PayPal credentials are not configured")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server configuration error")
    return paypal


def _check_image_size(request: Request, image: str) -> None:
    if len(image) > _get_settings(request).max_image_chars:
        raise HTTPException(status_code=status.HTTP_413_CONTENT_TOO_LARGE, detail="Image too large")


async def _require_paid(paypal: PayPalClient, order_id: str) -> None:
    """Re-verify the order server-side before releasing anything."""
    try:
        completed = await paypal.is_order_completed(order_id)
    except CollaboratorError as exc:
        logger.error("PayPal verification failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to verify payment"
        ) from exc
    if not completed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Payment not completed for this order")


@router.post(
    "/check-compliance",
    response_model=ComplianceResult,
    responses={
        status.HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_429_TOO_MANY_REQUESTS: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ComplianceResult},
    },
    dependencies=[*_public, Depends(rate_limit("compliance"))],
    summary="Evaluate a photo against passport facial standards",
)
async def check_compliance(body: ImageRequest, request: Request) -> ComplianceResult | JSONResponse:
    """Run the AI compliance check on a full-fidelity JPEG."""
    _check_image_size(request, body.image)

    evaluator = _get_evaluator(request)
    if evaluator is None:
        logger.error("PASSPORTKIT_GEMINI_API_KEY is not set")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server configuration error")

    try:
        return await evaluator.evaluate(strip_data_url(body.image))
    except CollaboratorError as exc:
        logger.error("AI evaluation error: %s", exc)
        failed = ComplianceResult.failed(f"AI service error: {exc}. Please try again.")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=failed.model_dump(by_alias=True),
        )


@router.post(
    "/verify-payment",
    response_model=PaymentResult,
    response_model_exclude_none=True,
    responses={status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": PaymentResult}},
    dependencies=[*_public, Depends(rate_limit("payment"))],
    summary="Check that a PayPal order has been captured",
)
async def verify_payment(body: VerifyPaymentRequest, request: Request) -> PaymentResult | JSONResponse:
    """Return whether the order is COMPLETED on the provider side."""
    paypal: PayPalClient | None = request.app.state.paypal
    if paypal is None:
        logger.error("PayPal credentials are not configured")
        return _payment_failure("Server configuration error")

    try:
        order_status = await paypal.order_status(body.order_id)
    except CollaboratorError as exc:
        logger.error("PayPal verification error: %s", exc)
        return _payment_failure("Failed to verify payment with PayPal")

    if order_status == ORDER_COMPLETED:
        logger.info("Order %s verified", body.order_id)
        return PaymentResult(verified=True, order_id=body.order_id)
    return PaymentResult(
        verified=False,
        order_id=body.order_id,
        error=f"Payment not completed. Status: {order_status or 'unknown'}",
    )


def _payment_failure(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=PaymentResult(verified=False, error=message).model_dump(by_alias=True, exclude_none=True),
    )


@router.post(
    "/store-photo",
    response_model=StorePhotoResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
    },
    dependencies=[*_public, Depends(rate_limit("store"))],
    summary="Store a full-fidelity photo for later paid download",
)
async def store_photo(body: ImageRequest, request: Request) -> StorePhotoResponse:
    _check_image_size(request, body.image)
    try:
        data = decode_data_url(body.image)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing or invalid image data") from exc

    try:
        photo_id = _get_store(request).put(data)
    except OSError as exc:
        logger.error("Photo store error: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to store photo"
        ) from exc
    return StorePhotoResponse(photo_id=photo_id)


@router.post(
    "/download-photo",
    response_model=DownloadPhotoResponse,
    responses={
        status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    },
    dependencies=[*_public, Depends(rate_limit("download"))],
    summary="Exchange a paid order for a time-limited download link",
)
async def download_photo(body: DownloadPhotoRequest, request: Request) -> DownloadPhotoResponse:
    await _require_paid(_require_paypal(request), body.order_id)

    store = _get_store(request)
    if not store.exists(body.photo_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not found")
    return DownloadPhotoResponse(download_url=store.signed_url(body.photo_id))


@router.get(
    "/photos/{photo_id}.jpg",
    response_class=FileResponse,
    responses={status.HTTP_403_FORBIDDEN: {"model": ErrorResponse}, status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
    dependencies=[Depends(rate_limit("download"))],
    summary="Serve a stored photo through a signed link",
)
async def serve_photo(photo_id: str, expires: int, signature: str, request: Request) -> FileResponse:
    store = _get_store(request)
    if not re.fullmatch(PHOTO_ID_PATTERN, photo_id) or not store.exists(photo_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not found")
    if not store.check_signature(photo_id, expires, signature):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired link")
    return FileResponse(store.path_for(photo_id), media_type="image/jpeg", filename="nz_passport_photo.jpg")


@router.post(
    "/send-download-email",
    response_model=EmailResult,
    response_model_exclude_none=True,
    responses={
        status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_501_NOT_IMPLEMENTED: {"model": ErrorResponse},
    },
    dependencies=[*_public, Depends(rate_limit("download"))],
    summary="Email a download link for a paid photo",
)
async def send_download_email(body: SendEmailRequest, request: Request) -> EmailResult | JSONResponse:
    mailer = _get_mailer(request)
    if mailer is None:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Not implemented. Email delivery is not configured.",
        )

    await _require_paid(_require_paypal(request), body.order_id)
    store = _get_store(request)
    if not store.exists(body.photo_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not found")

    try:
        await mailer.send_download_link(body.email, store.signed_url(body.photo_id))
    except CollaboratorError as exc:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=EmailResult(sent=False, error=str(exc)).model_dump(),
        )
    return EmailResult(sent=True)


@router.post("/paypal-webhook", summary="Receive PayPal payment notifications")
async def paypal_webhook(request: Request) -> JSONResponse:
    """Verify a PayPal delivery and log the payment event.

    Once the signature checks out the response is always 200 so PayPal does
    not keep retrying.
    """
    settings = _get_settings(request)
    if not settings.paypal_webhook_id:
        logger.error("PASSPORTKIT_PAYPAL_WEBHOOK_ID is not set")
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Server configuration error"})

    if not all(request.headers.get(name) for name in _REQUIRED_WEBHOOK_HEADERS):
        logger.error("Missing PayPal webhook headers")
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"detail": "Unauthorized"})

    paypal = _require_paypal(request)
    try:
        event: Any = await request.json()
    except ValueError:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": "Invalid JSON body"})
    if not isinstance(event, dict):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": "Invalid JSON body"})

    try:
        verified = await paypal.verify_webhook(request.headers, event)
    except CollaboratorError as exc:
        logger.error("PayPal webhook verification error: %s", exc)
        return JSONResponse(status_code=status.HTTP_200_OK, content={"detail": "Auth failed"})
    if not verified:
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"detail": "Invalid signature"})

    try:
        _log_payment_event(event)
    except (AttributeError, TypeError):
        logger.exception("Failed to process PayPal webhook event")
        return JSONResponse(status_code=status.HTTP_200_OK, content={"detail": "Processing failed"})
    return JSONResponse(status_code=status.HTTP_200_OK, content={"received": True})


def _log_payment_event(event: dict[str, Any]) -> None:
    event_type = event.get("event_type")
    resource = event.get("resource") or {}
    resource_id = resource.get("id")
    if event_type == "PAYMENT.CAPTURE.COMPLETED":
        amount = resource.get("amount") or {}
        logger.info(
            "Payment capture completed: %s amount=%s %s",
            resource_id,
            amount.get("value"),
            amount.get("currency_code"),
        )
    elif event_type == "PAYMENT.CAPTURE.DENIED":
        logger.error("Payment capture denied: %s", resource_id)
    elif event_type == "PAYMENT.CAPTURE.REFUNDED":
        logger.info("Payment refunded: %s", resource_id)
    else:
        logger.info("Unhandled webhook event: %s", event_type)


@router.get(
    "/cleanup-photos",
    response_model=CleanupResponse,
    dependencies=[Depends(verify_cron_secret)],
    summary="Delete stored photos past their retention period",
)
async def cleanup_photos(request: Request) -> CleanupResponse:
    settings = _get_settings(request)
    deleted = _get_store(request).delete_older_than(settings.photo_max_age)
    return CleanupResponse(deleted=deleted)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = _get_settings(request)
    return HealthResponse(
        status="ok",
        environment=settings.environment,
        compliance_enabled=_get_evaluator(request) is not None,
        payments_enabled=request.app.state.paypal is not None,
        email_enabled=_get_mailer(request) is not None,
    )
