"""Pointer provider using pynput."""

from __future__ import annotations

import asyncio
import logging

from wheelaway.domain.models import PointerPosition
from wheelaway.pointer.base import PointerError, PointerProvider

logger = logging.getLogger(__name__)


class PynputPointerProvider(PointerProvider):
    """Reads the mouse position through a pynput mouse controller.

    The controller is created lazily since pynput needs a display
    connection on some platforms.
    """

    def __init__(self) -> None:
        self._controller = None

    def _ensure_controller(self) -> None:
        if self._controller is not None:
            return
        from pynput import mouse
        self._controller = mouse.Controller()
        logger.info("Initialized pynput mouse controller")

    async def get_pointer_position(self) -> PointerPosition:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._position_sync)

    def _position_sync(self) -> PointerPosition:
        """Read the position (runs in thread pool)."""
        try:
            self._ensure_controller()
            position = self._controller.position
        except Exception as e:
            raise PointerError(f"Error getting mouse position: {e}") from e
        if position is None:
            raise PointerError("Mouse position unavailable")
        x, y = position
        return PointerPosition(x=int(x), y=int(y))
