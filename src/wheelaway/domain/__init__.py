"""Domain models for wheelaway.

This package contains the core data structures, enumerations and state
snapshots used throughout the system. All models use Pydantic v2 for
validation and serialization.
"""

from wheelaway.domain.models import (
    FALLBACK_REASON,
    AppStatus,
    ArtifactInfo,
    CaptureArtifact,
    ClassificationVerdict,
    CommandResult,
    ConnectionState,
    DeviceConnection,
    ImageFormat,
    PointerPosition,
    PortCatalog,
    PortDescriptor,
    ScreenCapture,
    SensingSession,
    SessionState,
)

__all__ = [
    "FALLBACK_REASON",
    "AppStatus",
    "ArtifactInfo",
    "CaptureArtifact",
    "ClassificationVerdict",
    "CommandResult",
    "ConnectionState",
    "DeviceConnection",
    "ImageFormat",
    "PointerPosition",
    "PortCatalog",
    "PortDescriptor",
    "ScreenCapture",
    "SensingSession",
    "SessionState",
]
