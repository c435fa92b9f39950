"""Core domain models for the wheelaway system.

These models represent the data flowing through the sensing loop: screen
captures from the provider, decoded capture artifacts, productivity
verdicts from the classifier, serial port descriptors and the observable
state snapshots handed to the presentation layer.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from wheelaway.capture.handles import DisplayHandle


FALLBACK_REASON = "classification failed"


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SessionState(str, enum.Enum):
    """Lifecycle state of the sensing session."""

    IDLE = "idle"
    ACTIVE = "active"


class ConnectionState(str, enum.Enum):
    """State of the link to the external serial device."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ImageFormat(str, enum.Enum):
    """Encoding used by the capture provider."""

    PNG = "png"
    JPEG = "jpeg"

    @property
    def media_type(self) -> str:
        return f"image/{self.value}"

    @property
    def data_uri_prefix(self) -> str:
        return f"data:{self.media_type};base64,"


# ---------------------------------------------------------------------------
# Capture Models
# ---------------------------------------------------------------------------


class ScreenCapture(BaseModel):
    """Raw payload returned by a capture provider.

    ``data`` is a base64 string carrying a data-URI prefix, e.g.
    ``data:image/png;base64,iVBORw0...``.
    """

    model_config = ConfigDict(frozen=True)

    data: str = Field(description="Base64 encoded image with a data-URI prefix")
    width: int = Field(ge=0, description="Image width in pixels")
    height: int = Field(ge=0, description="Image height in pixels")


class CaptureArtifact(BaseModel):
    """One decoded screen image owned by the capture artifact manager.

    Readers get snapshots of this model. The ``handle`` belongs to the
    manager; readers must not keep it past their own lease.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    data: bytes = Field(repr=False, description="Decoded image bytes")
    width: int = Field(ge=0)
    height: int = Field(ge=0)
    media_type: str = Field(default="image/png")
    generation: int = Field(ge=1, description="Monotonic generation token")
    captured_at: datetime = Field(default_factory=datetime.now)
    handle: Any = Field(repr=False, description="DisplayHandle for the presentation layer")

    @property
    def display_handle(self) -> DisplayHandle:
        return self.handle


class ArtifactInfo(BaseModel):
    """Read projection of the current artifact without the image bytes."""

    generation: int
    width: int
    height: int
    media_type: str
    captured_at: datetime
    size_bytes: int


# ---------------------------------------------------------------------------
# Classification Models
# ---------------------------------------------------------------------------


class ClassificationVerdict(BaseModel):
    """Result of one classification attempt. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    is_productive: bool
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str
    produced_at: datetime = Field(default_factory=datetime.now)
    is_fallback: bool = Field(
        default=False, description="True when this is the placeholder for a failed attempt"
    )

    @classmethod
    def fallback(cls) -> ClassificationVerdict:
        return cls(
            is_productive=False,
            confidence=0.0,
            reason=FALLBACK_REASON,
            is_fallback=True,
        )

    @property
    def actuation_command(self) -> str:
        """Device command for this verdict: the wheel stops when productive."""
        return "OFF" if self.is_productive else "ON"


# ---------------------------------------------------------------------------
# Device Models
# ---------------------------------------------------------------------------


class PortDescriptor(BaseModel):
    """A discoverable serial port."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Port identifier, e.g. COM3 or /dev/ttyACM0")
    kind: str = Field(default="Unknown", description="USB, Bluetooth, PCI or Unknown")


PortCatalog = list[PortDescriptor]


class DeviceConnection(BaseModel):
    """Snapshot of the device link's connection state."""

    model_config = ConfigDict(frozen=True)

    state: ConnectionState = ConnectionState.DISCONNECTED
    port: str | None = Field(default=None, description="Port while connecting or connected")
    last_reply: str = Field(default="", description="Last reply line from the device")
    message: str = Field(default="", description="Last status or diagnostic message")

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED


# ---------------------------------------------------------------------------
# Session / Pointer Models
# ---------------------------------------------------------------------------


class SensingSession(BaseModel):
    """Snapshot of the sensing scheduler."""

    model_config = ConfigDict(frozen=True)

    state: SessionState = SessionState.IDLE
    started_at: datetime | None = None
    interval_ms: int = Field(gt=0)
    cycle_in_flight: bool = False
    cycles_completed: int = Field(default=0, ge=0)
    consecutive_capture_failures: int = Field(default=0, ge=0)
    next_cycle_due: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE


class PointerPosition(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: int
    y: int
    sampled_at: datetime = Field(default_factory=datetime.now)


# ---------------------------------------------------------------------------
# Presentation Models
# ---------------------------------------------------------------------------


class CommandResult(BaseModel):
    """Outcome of a command issued by the presentation layer."""

    success: bool
    message: str = ""


class AppStatus(BaseModel):
    """Combined read projection for the presentation layer."""

    session: SensingSession
    elapsed: timedelta
    elapsed_display: str
    connection: DeviceConnection
    ports: list[PortDescriptor] = Field(default_factory=list)
    verdict: ClassificationVerdict | None = None
    classifying: bool = False
    artifact: ArtifactInfo | None = None
    pointer: PointerPosition | None = None
    pointer_tracking: bool = False
