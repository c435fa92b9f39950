"""Screen capture provider using mss.

Grabs one monitor, downsizes tall screens to at most 1080 pixels high
and returns the image as a base64 data URI.
"""

from __future__ import annotations

import asyncio
import logging

import mss
import numpy as np
from mss.exception import ScreenShotError

from wheelaway.capture.base import CaptureError, CaptureProvider
from wheelaway.domain.models import ImageFormat, ScreenCapture
from wheelaway.utils.imaging import (
    DEFAULT_MAX_HEIGHT,
    bgra_to_bgr,
    encode_image,
    resize_to_max_height,
    to_data_uri,
)

logger = logging.getLogger(__name__)


class ScreenCaptureProvider(CaptureProvider):
    """Captures the screen with mss.

    Runs the blocking grab and encode in a thread pool executor to avoid
    blocking the event loop.
    """

    def __init__(
        self,
        monitor: int = 1,
        image_format: ImageFormat = ImageFormat.PNG,
        max_height: int = DEFAULT_MAX_HEIGHT,
        jpeg_quality: int = 85,
    ) -> None:
        self._monitor = monitor
        self._image_format = image_format
        self._max_height = max_height
        self._jpeg_quality = jpeg_quality

    @property
    def image_format(self) -> ImageFormat:
        return self._image_format

    async def capture_screen(self) -> ScreenCapture:
        """Capture the configured monitor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._capture_sync)

    def _capture_sync(self) -> ScreenCapture:
        """Synchronous grab and encode (runs in thread pool)."""
        try:
            with mss.mss() as sct:
                monitors = sct.monitors
                if self._monitor >= len(monitors):
                    raise CaptureError(
                        f"Monitor {self._monitor} not found ({len(monitors) - 1} available)"
                    )
                shot = sct.grab(monitors[self._monitor])
        except ScreenShotError as e:
            raise CaptureError(f"Screen grab failed: {e}") from e

        logger.debug("Screen captured (%dx%d)", shot.width, shot.height)
        image = bgra_to_bgr(np.asarray(shot))
        image = resize_to_max_height(image, self._max_height)

        try:
            encoded = encode_image(image, self._image_format, self._jpeg_quality)
        except ValueError as e:
            raise CaptureError(str(e)) from e

        height, width = image.shape[:2]
        logger.debug("Encoded capture as %s (%d bytes)", self._image_format.value, len(encoded))
        return ScreenCapture(
            data=to_data_uri(encoded, self._image_format),
            width=width,
            height=height,
        )
