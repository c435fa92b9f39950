"""Ownership of the current capture artifact and its display handle.

The manager wraps one capture provider and keeps exactly one "current"
artifact. Every successful capture installs a new artifact under a fresh
generation number, then retires the previous one. A retired handle is
released as soon as no reader holds a lease on its generation; while a
lease is outstanding the release is deferred to the moment the lease ends.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Callable

from wheelaway.capture.base import CaptureError, CaptureProvider
from wheelaway.capture.handles import DisplayHandle, HandleFactory, temp_file_handle_factory
from wheelaway.domain.models import ArtifactInfo, CaptureArtifact
from wheelaway.utils.events import ChangeNotifier
from wheelaway.utils.imaging import decode_data_uri

logger = logging.getLogger(__name__)


class CaptureArtifactManager:
    """Single owner of the current CaptureArtifact.

    Example usage::

        with CaptureArtifactManager(ScreenCaptureProvider()) as manager:
            artifact = await manager.capture_once()
            with manager.lease() as current:
                serve(current.data)
    """

    def __init__(
        self,
        provider: CaptureProvider,
        handle_factory: HandleFactory | None = None,
    ) -> None:
        self._provider = provider
        self._handle_factory = handle_factory or temp_file_handle_factory()
        self._current: CaptureArtifact | None = None
        self._generation = 0
        self._leases: dict[int, int] = {}
        self._retired: dict[int, DisplayHandle] = {}
        self._disposed = False
        self._notifier: ChangeNotifier[CaptureArtifact] = ChangeNotifier("capture")

    @property
    def generation(self) -> int:
        """Generation of the most recently installed artifact (0 if none)."""
        return self._generation

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def pending_releases(self) -> int:
        """Retired handles still waiting for their readers to finish."""
        return len(self._retired)

    def current(self) -> CaptureArtifact | None:
        """Snapshot of the current artifact.

        Callers that need the handle beyond the current call should use
        lease() instead.
        """
        return self._current

    def info(self) -> ArtifactInfo | None:
        artifact = self._current
        if artifact is None:
            return None
        return ArtifactInfo(
            generation=artifact.generation,
            width=artifact.width,
            height=artifact.height,
            media_type=artifact.media_type,
            captured_at=artifact.captured_at,
            size_bytes=len(artifact.data),
        )

    def subscribe(self, listener: Callable[[CaptureArtifact], None]) -> Callable[[], None]:
        return self._notifier.subscribe(listener)

    async def capture_once(self) -> CaptureArtifact:
        """Capture, decode and install a new current artifact.

        Raises:
            CaptureError: If the provider fails or the payload cannot be
                decoded. The previous artifact stays current.
        """
        if self._disposed:
            raise CaptureError("Capture manager has been disposed")

        try:
            capture = await self._provider.capture_screen()
        except CaptureError:
            raise
        except Exception as e:
            raise CaptureError(f"Capture provider failed: {e}") from e

        try:
            fmt, data = decode_data_uri(capture.data)
        except ValueError as e:
            raise CaptureError(str(e)) from e

        try:
            handle = self._handle_factory(data, fmt.media_type)
        except OSError as e:
            raise CaptureError(f"Could not create display handle: {e}") from e

        # dispose() may have run while the provider call was suspended
        if self._disposed:
            handle.release()
            raise CaptureError("Capture manager was disposed during capture")

        self._generation += 1
        artifact = CaptureArtifact(
            data=data,
            width=capture.width,
            height=capture.height,
            media_type=fmt.media_type,
            generation=self._generation,
            captured_at=datetime.now(),
            handle=handle,
        )

        previous = self._current
        self._current = artifact
        if previous is not None:
            self._retire(previous)

        logger.info(
            "Installed capture generation %d (%dx%d, %d bytes)",
            artifact.generation, artifact.width, artifact.height, len(data),
        )
        self._notifier.notify(artifact)
        return artifact

    @contextmanager
    def lease(self) -> Iterator[CaptureArtifact | None]:
        """Pin the current artifact so its handle outlives a concurrent swap.

        Yields None when nothing has been captured yet.
        """
        artifact = self._current
        if artifact is None or self._disposed:
            yield None
            return

        generation = artifact.generation
        self._leases[generation] = self._leases.get(generation, 0) + 1
        try:
            yield artifact
        finally:
            # dispose() clears the lease table, so the entry may be gone
            remaining = self._leases.get(generation, 0) - 1
            if remaining > 0:
                self._leases[generation] = remaining
            else:
                self._leases.pop(generation, None)
                handle = self._retired.pop(generation, None)
                if handle is not None:
                    handle.release()
                    logger.debug("Released deferred handle for generation %d", generation)

    def dispose(self) -> None:
        """Release every handle this manager owns. Safe to call repeatedly."""
        if self._disposed:
            return
        self._disposed = True

        released = 0
        if self._current is not None:
            self._current.handle.release()
            released += 1
        for handle in self._retired.values():
            handle.release()
            released += 1
        self._retired.clear()
        self._leases.clear()
        logger.info("Capture manager disposed (%d handles released)", released)

    def _retire(self, artifact: CaptureArtifact) -> None:
        generation = artifact.generation
        if self._leases.get(generation):
            self._retired[generation] = artifact.handle
            logger.debug(
                "Deferring release of generation %d (%d readers)",
                generation, self._leases[generation],
            )
        else:
            artifact.handle.release()

    def __enter__(self) -> CaptureArtifactManager:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.dispose()
