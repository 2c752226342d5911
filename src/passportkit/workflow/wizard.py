"""The photo wizard state machine.

Steps run upload -> crop -> validate -> payment -> download. ``start_over``
(or loading a new file) replaces the session from any step, and
validate -> crop is the only other backward move besides leaving payment
for another look at the results.

Every step entry issues a fresh ``CancellationToken`` and cancels the
previous one. Async handlers capture the token of the visit they started
in and drop their result if it was cancelled by the time they resume, so a
late compliance verdict or payment confirmation can never land on a reset
or abandoned session.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from passportkit.clients.compliance import CONNECTION_FAILURE_FEEDBACK
from passportkit.clients.payment import OrderRequest
from passportkit.errors import CollaboratorError, DecodeError, EncodeError, RenderError, TransitionError
from passportkit.imaging.encoding import FULL_QUALITY, PREVIEW_QUALITY, package_outputs
from passportkit.imaging.technical import PhotoRequirements, validate_technical
from passportkit.imaging.transform import (
    TARGET_HEIGHT,
    TARGET_WIDTH,
    CropRegion,
    decode_image,
    default_crop,
    normalize_rotation,
    render_outputs,
)
from passportkit.models import ComplianceResult
from passportkit.workflow.cancellation import CancellationToken
from passportkit.workflow.session import PaymentState, WorkflowSession, WorkflowStep

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from passportkit.clients.compliance import ComplianceChecker
    from passportkit.clients.delivery import PhotoDelivery
    from passportkit.clients.payment import PaymentCheckout, PaymentVerifier
    from passportkit.config import Settings
    from passportkit.models import EmailResult

logger = logging.getLogger(__name__)

DOWNLOAD_FILENAME = "nz_passport_photo.jpg"

DECODE_FAILURE = "Could not read this file. Please choose a JPEG photo."
CROP_FAILURE = "Could not process the photo. Please try again."
CHECKOUT_LOAD_FAILURE = "Failed to load payment system. Please refresh."
CHECKOUT_FAILURE = "Payment error. Please try again."
PAYMENT_FAILURE = "Payment failed. Please try again."
VERIFICATION_FAILURE = "Payment verification failed."


@dataclass(frozen=True)
class DownloadArtifact:
    """The paid deliverable, ready to save."""

    filename: str
    data: bytes
    data_url: str


class PhotoWizard:
    """Event handlers for one user's pass through the wizard.

    Handlers are called from a single event loop. The session is only ever
    mutated here.
    """

    def __init__(
        self,
        compliance: ComplianceChecker,
        checkout: PaymentCheckout,
        verifier: PaymentVerifier,
        *,
        order: OrderRequest,
        delivery: PhotoDelivery | None = None,
        requirements: PhotoRequirements | None = None,
        target_size: tuple[int, int] = (TARGET_WIDTH, TARGET_HEIGHT),
        full_quality: int = FULL_QUALITY,
        preview_quality: int = PREVIEW_QUALITY,
    ) -> None:
        self._compliance = compliance
        self._checkout = checkout
        self._verifier = verifier
        self._delivery = delivery
        self._order = order
        self._requirements = requirements or PhotoRequirements()
        self._target_size = target_size
        self._full_quality = full_quality
        self._preview_quality = preview_quality
        self.session = WorkflowSession()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        compliance: ComplianceChecker,
        checkout: PaymentCheckout,
        verifier: PaymentVerifier,
        delivery: PhotoDelivery | None = None,
    ) -> PhotoWizard:
        return cls(
            compliance,
            checkout,
            verifier,
            order=OrderRequest(
                amount=settings.price,
                currency=settings.currency,
                description=settings.order_description,
            ),
            delivery=delivery,
            requirements=settings.photo_requirements(),
            target_size=(settings.target_width, settings.target_height),
            full_quality=settings.full_quality,
            preview_quality=settings.preview_quality,
        )

    @property
    def step(self) -> WorkflowStep:
        return self.session.step

    # -- Transitions ----------------------------------------------------------

    def _require(self, action: str, *steps: WorkflowStep) -> WorkflowSession:
        if self.session.step not in steps:
            raise TransitionError(f"Cannot {action} in step '{self.session.step}'")
        return self.session

    def _enter(self, step: WorkflowStep) -> None:
        session = self.session
        previous = session.step
        session.visit.cancel(f"left {previous}")
        if previous is WorkflowStep.PAYMENT and step is not WorkflowStep.PAYMENT:
            session.payment_button_rendered = False
        session.step = step
        session.visit = CancellationToken()
        session.error = None
        logger.info("Wizard %s -> %s", previous, step)

    def start_over(self) -> None:
        """Drop the whole session; pending results from it will be ignored."""
        self.session.visit.cancel("start over")
        self.session = WorkflowSession()
        logger.info("Wizard reset")

    # -- Upload / crop --------------------------------------------------------

    def upload(self, data: bytes) -> WorkflowStep:
        """Load a new photo. Supersedes whatever session was in progress."""
        try:
            source = decode_image(data)
        except DecodeError as exc:
            logger.warning("Upload rejected: %s", exc)
            self.session.error = DECODE_FAILURE
            return self.session.step

        if self.session.step is not WorkflowStep.UPLOAD or self.session.source is not None:
            self.start_over()
        self.session.source = source
        self.session.crop = default_crop(source.width, source.height)
        self._enter(WorkflowStep.CROP)
        return self.session.step

    def adjust_crop(self, region: CropRegion) -> None:
        """Live update from the crop control (pan, zoom, rotate)."""
        session = self._require("adjust crop", WorkflowStep.CROP)
        if session.loading:
            raise TransitionError("Cannot adjust crop while the photo is being checked")
        session.crop = dataclasses.replace(region, rotation=normalize_rotation(region.rotation))

    async def apply_crop(self) -> WorkflowStep:
        """Render, encode and validate locally, then wait for the AI verdict."""
        session = self._require("apply crop", WorkflowStep.CROP)
        if session.loading:
            raise TransitionError("A compliance check is already in progress")
        if session.source is None or session.crop is None:
            raise TransitionError("No crop selected")

        session.error = None
        session.loading = True
        try:
            rendered = render_outputs(session.source, session.crop, self._target_size)
            packaged = package_outputs(rendered, self._full_quality, self._preview_quality)
        except (RenderError, EncodeError) as exc:
            logger.error("Crop apply failed: %s", exc)
            session.loading = False
            session.error = CROP_FAILURE
            return session.step

        full = packaged.full
        session.rendered = rendered
        session.packaged = packaged
        session.technical = validate_technical(
            full.size_bytes, full.width, full.height, full.format, self._requirements
        )

        token = session.visit
        try:
            result = await self._compliance.check(full.data_url)
        except CollaboratorError as exc:
            logger.error("Compliance check failed: %s", exc)
            result = ComplianceResult.failed(CONNECTION_FAILURE_FEEDBACK)

        if token.cancelled:
            logger.info("Dropping compliance result (%s)", token.reason)
            return self.session.step

        session.compliance = result
        session.loading = False
        self._enter(WorkflowStep.VALIDATE)
        return session.step

    def recrop(self) -> WorkflowStep:
        """Go back to cropping; the previous verdicts are discarded."""
        session = self._require("re-crop", WorkflowStep.VALIDATE)
        session.rendered = None
        session.packaged = None
        session.technical = None
        session.compliance = None
        self._enter(WorkflowStep.CROP)
        return session.step

    # -- Payment --------------------------------------------------------------

    async def accept(self) -> WorkflowStep:
        """Accept a compliant photo and move on to payment."""
        session = self._require("accept", WorkflowStep.VALIDATE)
        if not session.can_accept:
            raise TransitionError("Photo has not passed the size and compliance checks")
        self._enter(WorkflowStep.PAYMENT)
        await self.prepare_checkout()
        return self.session.step

    async def prepare_checkout(self) -> None:
        """Load the payment SDK (once per session) and render the pay button (once per visit).

        Every call waits on the same in-flight load, so leaving and re-entering
        Payment while the SDK loads still renders the button for the new
        visit. A load failure is shown to the user and not retried until they
        call this again.
        """
        session = self._require("prepare checkout", WorkflowStep.PAYMENT)
        token = session.visit

        if not session.checkout_ready:
            if session.checkout_load is None:
                session.checkout_load = asyncio.ensure_future(self._checkout.load())
            load = session.checkout_load
            try:
                await asyncio.shield(load)
            except CollaboratorError as exc:
                if session.checkout_load is load:
                    session.checkout_load = None
                if not token.cancelled:
                    logger.error("Failed to load payment SDK: %s", exc)
                    session.payment.error = CHECKOUT_LOAD_FAILURE
                return
            session.checkout_ready = True

        if token.cancelled:
            return
        if session.payment.error == CHECKOUT_LOAD_FAILURE:
            session.payment.error = None
        if session.payment_button_rendered:
            return
        session.payment_button_rendered = True
        self._checkout.render_button(self._order)

    async def approve_payment(self, capture: Callable[[], Awaitable[str]]) -> WorkflowStep:
        """Capture the approved order, then have the server verify it.

        ``capture`` returns the provider order id and raises CollaboratorError
        on failure.
        """
        session = self._require("approve payment", WorkflowStep.PAYMENT)
        if session.payment_pending:
            raise TransitionError("A payment is already being processed")

        token = session.visit
        session.payment_pending = True
        session.payment.error = None
        try:
            order_id = await capture()
            if token.cancelled:
                logger.info("Dropping captured order %s (%s)", order_id, token.reason)
                return self.session.step
            result = await self._verifier.verify(order_id)
        except CollaboratorError as exc:
            if not token.cancelled:
                logger.error("Payment failed: %s", exc)
                session.payment.error = str(exc) or PAYMENT_FAILURE
            return self.session.step
        finally:
            if not token.cancelled:
                session.payment_pending = False

        if token.cancelled:
            logger.info("Dropping payment verification for %s (%s)", order_id, token.reason)
            return self.session.step

        if result.verified:
            session.payment = PaymentState(verified=True, order_id=result.order_id or order_id)
            self._enter(WorkflowStep.DOWNLOAD)
        else:
            logger.warning("Order %s not verified: %s", order_id, result.error)
            session.payment = PaymentState(
                verified=False,
                order_id=result.order_id or order_id,
                error=result.error or VERIFICATION_FAILURE,
            )
        return session.step

    def checkout_failed(self, message: str | None = None) -> None:
        """The provider reported an error inside its own checkout flow."""
        session = self._require("report checkout error", WorkflowStep.PAYMENT)
        logger.error("Checkout error: %s", message)
        session.payment.error = message or CHECKOUT_FAILURE

    def back_to_review(self) -> WorkflowStep:
        """Leave payment and return to the results screen."""
        session = self._require("leave payment", WorkflowStep.PAYMENT)
        if session.payment_pending:
            raise TransitionError("A payment is already being processed")
        self._enter(WorkflowStep.VALIDATE)
        return session.step

    # -- Download -------------------------------------------------------------

    def _require_paid(self, action: str) -> WorkflowSession:
        session = self._require(action, WorkflowStep.DOWNLOAD)
        if not session.payment.verified or session.packaged is None:
            raise TransitionError("Payment has not been verified")
        return session

    def download(self) -> DownloadArtifact:
        """Release the full-quality photo."""
        session = self._require_paid("download")
        full = session.packaged.full  # type: ignore[union-attr]
        return DownloadArtifact(filename=DOWNLOAD_FILENAME, data=full.data, data_url=full.data_url)

    async def _stored_photo_id(self, delivery: PhotoDelivery, session: WorkflowSession) -> str:
        """Store the full photo at most once; concurrent callers share the upload."""
        if session.photo_id is not None:
            return session.photo_id
        if session.photo_upload is None:
            session.photo_upload = asyncio.ensure_future(
                delivery.store_photo(session.packaged.full.data_url)  # type: ignore[union-attr]
            )
        upload = session.photo_upload
        try:
            photo_id = await asyncio.shield(upload)
        except CollaboratorError:
            if session.photo_upload is upload:
                session.photo_upload = None
            raise
        session.photo_id = photo_id
        return photo_id

    async def request_download_link(self) -> str | None:
        """Store the photo server-side (once) and fetch a time-limited link."""
        session = self._require_paid("request download link")
        delivery = self._require_delivery()
        token = session.visit
        try:
            photo_id = await self._stored_photo_id(delivery, session)
            url = await delivery.download_url(photo_id, session.payment.order_id or "")
        except CollaboratorError as exc:
            if not token.cancelled:
                logger.error("Download link failed: %s", exc)
                session.error = str(exc)
            return None
        if token.cancelled:
            return None
        session.download_url = url
        return url

    async def email_download(self, email: str) -> EmailResult | None:
        """Email the download link for the stored photo."""
        session = self._require_paid("email download")
        delivery = self._require_delivery()
        token = session.visit
        try:
            photo_id = await self._stored_photo_id(delivery, session)
            result = await delivery.send_download_email(email, photo_id, session.payment.order_id or "")
        except CollaboratorError as exc:
            if not token.cancelled:
                logger.error("Email delivery failed: %s", exc)
                session.error = str(exc)
            return None
        if token.cancelled:
            return None
        if not result.sent:
            session.error = result.error or "Failed to send email"
        return result

    def _require_delivery(self) -> PhotoDelivery:
        if self._delivery is None:
            raise TransitionError("No photo delivery service is configured")
        return self._delivery
