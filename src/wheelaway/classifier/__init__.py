"""Productivity classifier module for wheelaway.

Provides a provider-agnostic interface for sending screenshots to
multimodal LLMs, and the single-flight gate the sensing loop uses.

Public API:
    Classifier -- Abstract base class
    ClassifierGate -- Single-flight wrapper producing verdicts
    OpenAIClassifier -- OpenAI-compatible implementation (Gemini by default)
"""

from wheelaway.classifier.base import (
    PRODUCTIVITY_INSTRUCTION,
    ClassificationError,
    Classifier,
    VerdictPayload,
)
from wheelaway.classifier.gate import ClassifierGate

__all__ = [
    "PRODUCTIVITY_INSTRUCTION",
    "ClassificationError",
    "Classifier",
    "ClassifierGate",
    "OpenAIClassifier",
    "VerdictPayload",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "OpenAIClassifier":
        from wheelaway.classifier.openai import OpenAIClassifier
        return OpenAIClassifier
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
