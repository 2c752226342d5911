"""Result models shared by the wizard, its clients and the HTTP service."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

CHECK_ERROR = "Error"


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ComplianceChecks(CamelModel):
    """Per-category verdicts: 'Pass', 'Warning: <reason>' or 'Fail: <reason>'."""

    background: str = Field(
        description="Description of background status. Use 'Pass', 'Warning: [reason]', or 'Fail: [reason]'",
    )
    head_size: str = Field(alias="headSize")
    expression: str
    lighting: str
    sharpness: str


class ComplianceResult(CamelModel):
    """AI verdict on facial and background standards."""

    passed: bool
    score: float = Field(ge=0, le=100, description="Compliance score from 0-100")
    checks: ComplianceChecks
    feedback: str = Field(description="Overall summary and advice")

    @classmethod
    def failed(cls, feedback: str) -> ComplianceResult:
        """Error-shaped result: not passed, zero score, every check marked Error."""
        return cls(
            passed=False,
            score=0,
            checks=ComplianceChecks(
                background=CHECK_ERROR,
                head_size=CHECK_ERROR,
                expression=CHECK_ERROR,
                lighting=CHECK_ERROR,
                sharpness=CHECK_ERROR,
            ),
            feedback=feedback,
        )


class PaymentResult(CamelModel):
    """Outcome of checking an order with the payment provider."""

    verified: bool
    order_id: str | None = Field(default=None, alias="orderID")
    error: str | None = None


class EmailResult(BaseModel):
    sent: bool
    error: str | None = None
