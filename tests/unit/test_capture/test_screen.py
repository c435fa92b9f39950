"""Tests for the mss screen capture provider."""

from __future__ import annotations

from unittest.mock import patch

import numpy as np
import pytest

from wheelaway.capture.base import CaptureError
from wheelaway.capture.screen import ScreenCaptureProvider
from wheelaway.domain.models import ImageFormat
from wheelaway.utils.imaging import decode_data_uri


class FakeShot:
    """Stands in for an mss ScreenShot (BGRA pixels)."""

    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height

    def __array__(self, dtype=None, copy=None) -> np.ndarray:
        return np.zeros((self.height, self.width, 4), dtype=np.uint8)


@pytest.fixture
def mock_mss():
    with patch("wheelaway.capture.screen.mss.mss") as factory:
        sct = factory.return_value.__enter__.return_value
        sct.monitors = [
            {"left": 0, "top": 0, "width": 400, "height": 200},
            {"left": 0, "top": 0, "width": 400, "height": 200},
        ]
        sct.grab.return_value = FakeShot(400, 200)
        yield sct


class TestScreenCaptureProvider:
    @pytest.mark.asyncio
    async def test_capture_returns_png_data_uri(self, mock_mss) -> None:
        provider = ScreenCaptureProvider(monitor=1)
        capture = await provider.capture_screen()

        assert capture.data.startswith("data:image/png;base64,")
        assert (capture.width, capture.height) == (400, 200)
        fmt, data = decode_data_uri(capture.data)
        assert fmt == ImageFormat.PNG
        mock_mss.grab.assert_called_once_with(mock_mss.monitors[1])

    @pytest.mark.asyncio
    async def test_tall_screen_is_downscaled(self, mock_mss) -> None:
        mock_mss.grab.return_value = FakeShot(400, 200)
        provider = ScreenCaptureProvider(monitor=1, max_height=100)
        capture = await provider.capture_screen()
        assert (capture.width, capture.height) == (200, 100)

    @pytest.mark.asyncio
    async def test_jpeg_format(self, mock_mss) -> None:
        provider = ScreenCaptureProvider(monitor=1, image_format=ImageFormat.JPEG)
        capture = await provider.capture_screen()
        assert capture.data.startswith("data:image/jpeg;base64,")

    @pytest.mark.asyncio
    async def test_missing_monitor(self, mock_mss) -> None:
        provider = ScreenCaptureProvider(monitor=3)
        with pytest.raises(CaptureError, match="Monitor 3 not found"):
            await provider.capture_screen()
