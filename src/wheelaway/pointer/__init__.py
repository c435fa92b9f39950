"""Pointer tracking module for wheelaway.

Public API:
    PointerProvider -- Abstract base class
    PointerSampler -- Polling loop publishing the pointer position
    PynputPointerProvider -- pynput implementation
"""

from wheelaway.pointer.base import PointerError, PointerProvider
from wheelaway.pointer.sampler import PointerSampler

__all__ = ["PointerError", "PointerProvider", "PointerSampler", "PynputPointerProvider"]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "PynputPointerProvider":
        from wheelaway.pointer.pynput_provider import PynputPointerProvider
        return PynputPointerProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
