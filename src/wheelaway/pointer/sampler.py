"""Polling loop publishing the pointer position.

Independent from the sensing cycle: different cadence, no actuation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from wheelaway.domain.models import PointerPosition
from wheelaway.pointer.base import PointerProvider
from wheelaway.utils.events import ChangeNotifier

logger = logging.getLogger(__name__)

DEFAULT_POINTER_INTERVAL_MS = 100


class PointerSampler:
    """Samples the pointer position while tracking is on."""

    def __init__(
        self,
        provider: PointerProvider,
        interval_ms: int = DEFAULT_POINTER_INTERVAL_MS,
    ) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self._provider = provider
        self._interval = interval_ms / 1000.0
        self._tracking = False
        self._position: PointerPosition | None = None
        self._failures = 0
        self._task: asyncio.Task | None = None
        self._notifier: ChangeNotifier[PointerPosition] = ChangeNotifier("pointer")

    @property
    def is_tracking(self) -> bool:
        return self._tracking

    @property
    def position(self) -> PointerPosition | None:
        return self._position

    @property
    def failures(self) -> int:
        return self._failures

    def subscribe(self, listener: Callable[[PointerPosition], None]) -> Callable[[], None]:
        return self._notifier.subscribe(listener)

    def start_tracking(self) -> bool:
        """Start sampling. The first sample is taken immediately."""
        if self._tracking:
            return False
        self._tracking = True
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Pointer tracking started (every %.0f ms)", self._interval * 1000)
        return True

    def stop_tracking(self) -> bool:
        """Stop sampling after the current sample, if any."""
        if not self._tracking:
            return False
        self._tracking = False
        logger.info("Pointer tracking stopped")
        return True

    async def aclose(self) -> None:
        self._tracking = False
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def _run(self) -> None:
        while self._tracking:
            await self._sample()
            if not self._tracking:
                break
            await asyncio.sleep(self._interval)

    async def _sample(self) -> None:
        try:
            position = await self._provider.get_pointer_position()
        except Exception as e:
            self._failures += 1
            logger.error("Failed to get mouse position: %s", e)
            return
        self._position = position
        self._notifier.notify(position)
