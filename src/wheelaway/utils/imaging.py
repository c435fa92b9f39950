"""Image processing utilities for wheelaway.

Shared conversion, resizing and encoding helpers used by the capture
provider and the capture artifact manager.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from wheelaway.domain.models import ImageFormat

logger = logging.getLogger(__name__)

DEFAULT_MAX_HEIGHT = 1080


def bgra_to_bgr(image: np.ndarray) -> np.ndarray:
    """Drop the alpha channel from a BGRA screen grab."""
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


def resize_to_max_height(image: np.ndarray, max_height: int = DEFAULT_MAX_HEIGHT) -> np.ndarray:
    """Downscale an image so its height is at most ``max_height``.

    Preserves aspect ratio. Images already within bounds are returned
    unchanged.
    """
    h, w = image.shape[:2]
    if h <= max_height:
        return image
    new_w = round(max_height * (w / h))
    logger.debug("Resizing capture from %dx%d to %dx%d", w, h, new_w, max_height)
    return cv2.resize(image, (new_w, max_height), interpolation=cv2.INTER_AREA)


def encode_image(image: np.ndarray, fmt: ImageFormat, jpeg_quality: int = 85) -> bytes:
    """Encode a BGR numpy image to PNG or JPEG bytes."""
    if fmt == ImageFormat.JPEG:
        success, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, jpeg_quality])
    else:
        success, buffer = cv2.imencode(".png", image)
    if not success:
        raise ValueError(f"Failed to encode image to {fmt.value}")
    return buffer.tobytes()


def to_data_uri(data: bytes, fmt: ImageFormat) -> str:
    """Wrap encoded image bytes in a base64 data URI."""
    return fmt.data_uri_prefix + base64.b64encode(data).decode("ascii")


def split_data_uri(payload: str) -> tuple[ImageFormat, str]:
    """Strip a known data-URI prefix.

    Returns:
        The detected format and the bare base64 body.

    Raises:
        ValueError: If the payload carries no recognized prefix.
    """
    for fmt in ImageFormat:
        prefix = fmt.data_uri_prefix
        if payload.startswith(prefix):
            return fmt, payload[len(prefix):]
    head = payload[:32]
    raise ValueError(f"Unrecognized image payload prefix: {head!r}")


def decode_data_uri(payload: str) -> tuple[ImageFormat, bytes]:
    """Decode a data-URI image and check the bytes form a readable image.

    Raises:
        ValueError: On an unknown prefix, bad base64 or undecodable image.
    """
    fmt, body = split_data_uri(payload)
    try:
        data = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image data: {e}") from e
    if not data:
        raise ValueError("Image payload is empty")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValueError(f"Payload is not a readable {fmt.value} image: {e}") from e
    return fmt, data
