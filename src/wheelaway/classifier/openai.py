"""OpenAI-compatible classifier implementation.

Works with OpenAI and any OpenAI-compatible API by setting a custom
base_url, including Google's Gemini endpoint used by default.
"""

from __future__ import annotations

import base64
import logging

from wheelaway.classifier.base import ClassificationError, Classifier, VerdictPayload

logger = logging.getLogger(__name__)


class OpenAIClassifier(Classifier):
    """Classifier using the chat completions API with an image part."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash-lite",
        base_url: str | None = None,
        instruction: str | None = None,
        max_tokens: int = 512,
    ) -> None:
        super().__init__(model=model, instruction=instruction)
        self._api_key = api_key
        self._base_url = base_url
        self._max_tokens = max_tokens
        self._client = None

    async def _ensure_client(self) -> None:
        """Lazily initialize the OpenAI async client."""
        if self._client is not None:
            return
        from openai import AsyncOpenAI
        kwargs = {"api_key": self._api_key}
        if self._base_url:
            kwargs["base_url"] = self._base_url
        self._client = AsyncOpenAI(**kwargs)
        logger.info("Initialized classifier client (model=%s, base_url=%s)", self._model, self._base_url)

    async def classify(self, image: bytes, media_type: str = "image/png") -> VerdictPayload:
        """Classify a screenshot via the vision API."""
        await self._ensure_client()
        b64_image = base64.b64encode(image).decode("ascii")

        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": self._instruction},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{media_type};base64,{b64_image}"},
                    },
                ],
            },
        ]

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=messages,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            raise ClassificationError(
                f"Classifier API call failed: {e}",
                provider="openai",
            ) from e

        if not response.choices:
            raise ClassificationError("Classifier returned no choices", provider="openai")
        raw_text = response.choices[0].message.content
        logger.debug("Classifier raw response: %s", (raw_text or "")[:200])
        return self._parse_response(raw_text)

    async def health_check(self) -> bool:
        """Check if the API is reachable."""
        try:
            await self._ensure_client()
            await self._client.models.list()
            return True
        except Exception as e:
            logger.warning("Health check failed: %s", e)
            return False
