"""Screen capture module for wheelaway.

Provides the capture provider interface, the mss-backed screen capture
implementation and the artifact manager that owns the current decoded
capture and its display handle.

Public API:
    CaptureProvider -- Abstract base class
    CaptureArtifactManager -- Single owner of the current artifact
    ScreenCaptureProvider -- mss implementation
"""

from wheelaway.capture.base import CaptureError, CaptureProvider
from wheelaway.capture.handles import DisplayHandle, TempFileHandle
from wheelaway.capture.manager import CaptureArtifactManager

__all__ = [
    "CaptureArtifactManager",
    "CaptureError",
    "CaptureProvider",
    "DisplayHandle",
    "ScreenCaptureProvider",
    "TempFileHandle",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "ScreenCaptureProvider":
        from wheelaway.capture.screen import ScreenCaptureProvider
        return ScreenCaptureProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
