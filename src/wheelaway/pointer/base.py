"""Abstract base class for pointer position providers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from wheelaway.domain.models import PointerPosition


class PointerProvider(ABC):
    """Abstract interface for reading the current mouse position."""

    @abstractmethod
    async def get_pointer_position(self) -> PointerPosition:
        """Return the current pointer coordinates.

        Raises:
            PointerError: If the position cannot be read.
        """
        ...


class PointerError(Exception):
    """Raised when the pointer position cannot be read."""
