"""Single-flight gate around the classifier.

Only one classification runs at a time. A call arriving while another is
pending returns immediately without a verdict; the caller keeps whatever
verdict it already had. Failures never escape the gate: they become the
fallback verdict.
"""

from __future__ import annotations

import logging
from typing import Callable

from wheelaway.classifier.base import Classifier
from wheelaway.domain.models import ClassificationVerdict
from wheelaway.utils.events import ChangeNotifier

logger = logging.getLogger(__name__)


class ClassifierGate:
    """Turns raw image bytes into a verdict, one attempt at a time."""

    def __init__(self, classifier: Classifier) -> None:
        self._classifier = classifier
        self._busy = False
        self._latest: ClassificationVerdict | None = None
        self._dropped = 0
        self._notifier: ChangeNotifier[ClassificationVerdict] = ChangeNotifier("verdict")

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def latest(self) -> ClassificationVerdict | None:
        """Most recent verdict, or None before the first attempt completes."""
        return self._latest

    @property
    def dropped_calls(self) -> int:
        """Number of calls ignored because a classification was in flight."""
        return self._dropped

    def subscribe(self, listener: Callable[[ClassificationVerdict], None]) -> Callable[[], None]:
        return self._notifier.subscribe(listener)

    async def classify(
        self, image: bytes, media_type: str = "image/png"
    ) -> ClassificationVerdict | None:
        """Classify one image.

        Returns:
            The new verdict (possibly the fallback), or None if another
            classification was already in flight.
        """
        if self._busy:
            self._dropped += 1
            logger.debug("Classification already in flight, dropping call")
            return None

        self._busy = True
        try:
            verdict = await self._attempt(image, media_type)
        finally:
            self._busy = False

        self._latest = verdict
        self._notifier.notify(verdict)
        return verdict

    async def _attempt(self, image: bytes, media_type: str) -> ClassificationVerdict:
        try:
            payload = await self._classifier.classify(image, media_type)
        except Exception as e:
            logger.error("Classification failed: %s", e)
            return ClassificationVerdict.fallback()

        verdict = ClassificationVerdict(
            is_productive=payload.is_productive,
            confidence=payload.confidence,
            reason=payload.reason,
        )
        logger.info(
            "Verdict: %s (confidence %.2f) %s",
            "productive" if verdict.is_productive else "not productive",
            verdict.confidence,
            verdict.reason[:100],
        )
        return verdict
