"""Change notification for observable component state.

Each core component owns its state and publishes an immutable snapshot
after every transition. The presentation layer subscribes instead of
reading shared globals.
"""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]


class ChangeNotifier(Generic[T]):
    """Fan-out of state snapshots to registered listeners.

    Example usage::

        notifier: ChangeNotifier[DeviceConnection] = ChangeNotifier("device")
        unsubscribe = notifier.subscribe(lambda snap: print(snap.state))
        notifier.notify(snapshot)
        unsubscribe()
    """

    def __init__(self, name: str = "") -> None:
        self._name = name
        self._listeners: list[Listener[T]] = []

    def subscribe(self, listener: Listener[T]) -> Callable[[], None]:
        """Register a listener. Returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, snapshot: T) -> None:
        """Deliver a snapshot to every listener.

        A failing listener is logged and skipped; it never affects the
        publishing component or the other listeners.
        """
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Listener for %s failed", self._name or "state")

    def __len__(self) -> int:
        return len(self._listeners)
