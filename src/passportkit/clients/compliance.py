"""Client side of the AI compliance check."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from passportkit.models import ComplianceResult

logger = logging.getLogger(__name__)

CONNECTION_FAILURE_FEEDBACK = "Failed to connect to AI service for validation. Please try again."


class ComplianceChecker(Protocol):
    """Protocol for the AI compliance collaborator."""

    async def check(self, image_data_url: str) -> ComplianceResult:
        """Judge a full-fidelity photo.

        Never raises: failures come back as ``ComplianceResult.failed(...)``.
        """
        ...


class HttpComplianceChecker:
    """Calls ``POST /api/v1/check-compliance`` on the collaborator service."""

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def check(self, image_data_url: str) -> ComplianceResult:
        try:
            response = await self._http.post("/api/v1/check-compliance", json={"image": image_data_url})
            response.raise_for_status()
            return ComplianceResult.model_validate(response.json())
        except (httpx.HTTPError, ValueError, PydanticValidationError) as exc:
            logger.error("Compliance check failed: %s", exc)
            return ComplianceResult.failed(CONNECTION_FAILURE_FEEDBACK)
