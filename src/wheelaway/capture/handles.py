"""Display handles for captured images.

A display handle is the resource the presentation layer uses to show the
current capture. Handles are owned by the capture artifact manager and
must be released exactly once.
"""

from __future__ import annotations

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)

_SUFFIXES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
}


class DisplayHandle(ABC):
    """A releasable resource backing one captured image."""

    def __init__(self) -> None:
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Free the underlying resource. Releasing twice is a no-op."""
        if self._released:
            return
        self._released = True
        self._release()

    @abstractmethod
    def _release(self) -> None:
        ...


class TempFileHandle(DisplayHandle):
    """Backs the image with a temporary file that viewers can open by path."""

    def __init__(self, data: bytes, media_type: str, directory: str | Path | None = None) -> None:
        super().__init__()
        suffix = _SUFFIXES.get(media_type, ".img")
        fd, name = tempfile.mkstemp(prefix="wheelaway-", suffix=suffix, dir=directory)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except OSError:
            Path(name).unlink(missing_ok=True)
            raise
        self._path = Path(name)

    @property
    def path(self) -> Path:
        return self._path

    def _release(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove capture file %s: %s", self._path, e)

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"TempFileHandle({self._path.name}, {state})"


HandleFactory = Callable[[bytes, str], DisplayHandle]


def temp_file_handle_factory(directory: str | Path | None = None) -> HandleFactory:
    """Build a factory producing TempFileHandles in ``directory``."""

    def factory(data: bytes, media_type: str) -> DisplayHandle:
        return TempFileHandle(data, media_type, directory=directory)

    return factory
