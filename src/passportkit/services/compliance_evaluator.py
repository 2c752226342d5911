"""AI compliance evaluation through Gemini's OpenAI-compatible endpoint."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError as PydanticValidationError

from passportkit.errors import CollaboratorError
from passportkit.models import ComplianceResult

if TYPE_CHECKING:
    from passportkit.config import Settings

logger = logging.getLogger(__name__)

COMPLIANCE_PROMPT = """
Evaluate this photo for New Zealand passport compliance.
NZ DIA Official Guidelines:
- Background: Must be a plain, light-coloured background. Crucially: 'light white', cream, or light grey is acceptable. Only fail if the background is pure/bleached white, high-contrast, dark, or contains patterns/shadows.
- Head Size: The head should be clearly visible and roughly centered.
- Expression: Neutral expression, mouth closed.
- Lighting: Even lighting, no significant shadows on face or background.
- Focus: Sharp and clear.

CRITICAL INSTRUCTION: Be lenient. If the photo is borderline or has minor issues that would likely pass the official automated checker, set "passed" to true.
Use the word "WARNING" or "BORDERLINE" in the check descriptions (e.g. "Warning: Slightly bright") if a check isn't perfect but shouldn't cause a hard fail.
Only set "passed: false" for clear, definite violations (e.g. smiling, busy background, extremely dark).
"""

_CHECK_NAMES = ("background", "headSize", "expression", "lighting", "sharpness")

RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "passed": {"type": "boolean"},
        "score": {"type": "number", "description": "Compliance score from 0-100"},
        "checks": {
            "type": "object",
            "properties": {
                name: {
                    "type": "string",
                    "description": "Use 'Pass', 'Warning: [reason]', or 'Fail: [reason]'",
                }
                for name in _CHECK_NAMES
            },
            "required": list(_CHECK_NAMES),
        },
        "feedback": {"type": "string", "description": "Overall summary and advice"},
    },
    "required": ["passed", "score", "checks", "feedback"],
}


class ComplianceEvaluator:
    """Sends one JPEG to the vision model and parses its structured verdict."""

    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None) -> None:
        self._model = settings.gemini_model
        self._client = client or AsyncOpenAI(
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
        )

    async def evaluate(self, image_base64: str) -> ComplianceResult:
        """Evaluate a bare base64 JPEG.

        Raises:
            CollaboratorError: If the model call fails or returns an unusable body.
        """
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image_url",
                                "image_url": {"url": f"data:image/jpeg;base64,{image_base64}"},
                            },
                            {"type": "text", "text": COMPLIANCE_PROMPT},
                        ],
                    }
                ],
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": "compliance_result", "schema": RESPONSE_SCHEMA},
                },
            )
            content = response.choices[0].message.content or "{}"
            return ComplianceResult.model_validate_json(content)
        except OpenAIError as exc:
            raise CollaboratorError(str(exc)) from exc
        except PydanticValidationError as exc:
            raise CollaboratorError("Malformed response from AI model") from exc

    async def aclose(self) -> None:
        await self._client.close()
