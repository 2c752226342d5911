"""Wizard steps and the per-user session aggregate."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from passportkit.workflow.cancellation import CancellationToken

if TYPE_CHECKING:
    import asyncio

    from passportkit.imaging.encoding import PackagedOutput
    from passportkit.imaging.technical import TechnicalResult
    from passportkit.imaging.transform import CropRegion, RenderedOutput, SourceImage
    from passportkit.models import ComplianceResult


class WorkflowStep(StrEnum):
    UPLOAD = "upload"
    CROP = "crop"
    VALIDATE = "validate"
    PAYMENT = "payment"
    DOWNLOAD = "download"


@dataclass
class PaymentState:
    """Outcome of the last capture + verification. Never retried automatically."""

    verified: bool = False
    order_id: str | None = None
    error: str | None = None


@dataclass
class WorkflowSession:
    """Everything one user has produced so far. Replaced wholesale on start-over."""

    step: WorkflowStep = WorkflowStep.UPLOAD
    source: SourceImage | None = None
    crop: CropRegion | None = None
    rendered: RenderedOutput | None = None
    packaged: PackagedOutput | None = None
    technical: TechnicalResult | None = None
    compliance: ComplianceResult | None = None
    payment: PaymentState = field(default_factory=PaymentState)

    # In-flight markers; the triggering controls are disabled while set.
    loading: bool = False
    payment_pending: bool = False

    # Payment SDK loaded this session / button rendered this Payment visit.
    checkout_load: asyncio.Future[None] | None = None
    checkout_ready: bool = False
    payment_button_rendered: bool = False

    # Shared by concurrent download-link and email requests.
    photo_upload: asyncio.Future[str] | None = None
    photo_id: str | None = None
    download_url: str | None = None
    error: str | None = None

    visit: CancellationToken = field(default_factory=CancellationToken)

    @property
    def can_accept(self) -> bool:
        return (
            self.technical is not None
            and self.technical.size_valid
            and self.compliance is not None
            and self.compliance.passed
        )
