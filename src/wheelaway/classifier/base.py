"""Abstract base class for productivity classifiers.

A classifier sends one screenshot and a fixed instruction to a hosted
multimodal model and returns the structured answer, validated against
the verdict schema.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError, field_validator

logger = logging.getLogger(__name__)


PRODUCTIVITY_INSTRUCTION = """Analyze this screenshot and determine if the person is being productive.

Productive activities include work applications, coding, document editing, educational content, etc.
Non-productive activities include social media, entertainment, games, etc.
This screenshot is taken by a productivity monitor. Do not mention the monitor in your answer and
do not count it as productive activity.

Respond ONLY with valid JSON in the following format (no markdown, no explanation):
{
    "isProductive": true | false,
    "confidence": 0.0 to 1.0,
    "reason": "brief explanation of the productivity assessment"
}
"""


class VerdictPayload(BaseModel):
    """Schema the classifier's JSON answer must satisfy."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    is_productive: StrictBool = Field(
        alias="isProductive",
        description="Whether the user is being productive based on screen contents",
    )
    confidence: float = Field(
        allow_inf_nan=False,
        strict=True,
        description="Confidence score between 0 and 1",
    )
    reason: StrictStr = Field(description="Brief explanation of the productivity assessment")

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        """Out-of-range confidences are clamped into [0, 1], not rejected."""
        return max(0.0, min(1.0, float(value)))


class Classifier(ABC):
    """Abstract interface for screenshot productivity classifiers."""

    def __init__(self, model: str, instruction: str | None = None) -> None:
        self._model = model
        self._instruction = instruction or PRODUCTIVITY_INSTRUCTION

    @property
    def model(self) -> str:
        return self._model

    @property
    def instruction(self) -> str:
        return self._instruction

    @abstractmethod
    async def classify(self, image: bytes, media_type: str = "image/png") -> VerdictPayload:
        """Classify one screenshot.

        Args:
            image: Raw encoded image bytes.
            media_type: MIME type of ``image``.

        Raises:
            ClassificationError: If the call fails or the answer does not
                match the verdict schema.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the backend is reachable and authenticated."""
        ...

    def _parse_response(self, raw_response: str | None) -> VerdictPayload:
        """Parse and validate a raw model answer."""
        if not raw_response:
            raise ClassificationError(
                "Empty response from classifier",
                provider=type(self).__name__,
            )

        json_str = raw_response.strip()

        # Remove markdown code block if present
        match = re.search(r"```(?:json)?\s*(.*?)```", json_str, re.DOTALL)
        if match:
            json_str = match.group(1).strip()

        # Try to find JSON object in the text
        brace_match = re.search(r"\{.*\}", json_str, re.DOTALL)
        if brace_match:
            json_str = brace_match.group(0)

        data = None
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError:
            # Fix invalid escape sequences by replacing lone backslashes
            try:
                fixed = re.sub(r'\\(?!["\\/bfnrtu])', r"\\\\", json_str)
                data = json.loads(fixed)
            except json.JSONDecodeError:
                pass

        if not isinstance(data, dict):
            raise ClassificationError(
                "Failed to parse classifier response as a JSON object",
                provider=type(self).__name__,
                raw_response=raw_response,
            )

        try:
            return VerdictPayload.model_validate(data)
        except ValidationError as e:
            raise ClassificationError(
                f"Classifier response does not match the verdict schema: {e}",
                provider=type(self).__name__,
                raw_response=raw_response,
            ) from e


class ClassificationError(Exception):
    """Raised when classification fails."""

    def __init__(self, message: str, provider: str = "", raw_response: str = "") -> None:
        super().__init__(message)
        self.provider = provider
        self.raw_response = raw_response
