"""Abstract base class for screen capture providers.

A provider performs the native screen grab and hands back an encoded
image. Everything after that (decoding, ownership of the decoded
artifact, handle lifetime) belongs to the capture artifact manager.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from wheelaway.domain.models import ScreenCapture

logger = logging.getLogger(__name__)


class CaptureProvider(ABC):
    """Abstract interface for grabbing the user's screen.

    Example usage::

        provider = ScreenCaptureProvider(monitor=1)
        capture = await provider.capture_screen()
        print(capture.width, capture.height, capture.data[:30])
    """

    @abstractmethod
    async def capture_screen(self) -> ScreenCapture:
        """Capture the screen once.

        Returns:
            A ScreenCapture whose ``data`` is a base64 string prefixed with
            ``data:image/png;base64,`` or ``data:image/jpeg;base64,``.

        Raises:
            CaptureError: If the native capture fails.
        """
        ...


class CaptureError(Exception):
    """Raised when a screen capture cannot be taken or decoded."""
