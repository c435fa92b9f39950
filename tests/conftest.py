"""Shared test fixtures for the wheelaway test suite.

Provides in-memory stand-ins for the native edges (screen grab, serial
port, hosted classifier, event-loop timers) so the core components can be
driven deterministically.
"""

from __future__ import annotations

import io
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from wheelaway.capture.base import CaptureProvider
from wheelaway.capture.handles import DisplayHandle
from wheelaway.capture.manager import CaptureArtifactManager
from wheelaway.classifier.base import Classifier, VerdictPayload
from wheelaway.classifier.gate import ClassifierGate
from wheelaway.device.base import SerialTransport, TransportError
from wheelaway.device.link import DeviceLink
from wheelaway.domain.models import ImageFormat, PortDescriptor, ScreenCapture
from wheelaway.sensing.scheduler import SensingScheduler
from wheelaway.utils.imaging import to_data_uri


# ---------------------------------------------------------------------------
# Image Fixtures
# ---------------------------------------------------------------------------


def make_png(width: int = 8, height: int = 6, color: tuple[int, int, int] = (0, 0, 0)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    """A small valid PNG image."""
    return make_png()


@pytest.fixture
def png_data_uri(png_bytes: bytes) -> str:
    return to_data_uri(png_bytes, ImageFormat.PNG)


# ---------------------------------------------------------------------------
# Capture Fixtures
# ---------------------------------------------------------------------------


class FakeCaptureProvider(CaptureProvider):
    """Returns queued captures; falls back to a fresh PNG each call."""

    def __init__(self) -> None:
        self.results: list[ScreenCapture | Exception] = []
        self.calls = 0

    def queue(self, *results: ScreenCapture | Exception) -> None:
        self.results.extend(results)

    async def capture_screen(self) -> ScreenCapture:
        self.calls += 1
        if self.results:
            result = self.results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        color = (self.calls % 256, 0, 0)
        return ScreenCapture(
            data=to_data_uri(make_png(color=color), ImageFormat.PNG),
            width=8,
            height=6,
        )


class RecordingHandle(DisplayHandle):
    def __init__(self, data: bytes, media_type: str) -> None:
        super().__init__()
        self.data = data
        self.media_type = media_type
        self.release_count = 0

    def _release(self) -> None:
        self.release_count += 1


class RecordingHandleFactory:
    def __init__(self) -> None:
        self.handles: list[RecordingHandle] = []

    def __call__(self, data: bytes, media_type: str) -> RecordingHandle:
        handle = RecordingHandle(data, media_type)
        self.handles.append(handle)
        return handle


@pytest.fixture
def capture_provider() -> FakeCaptureProvider:
    return FakeCaptureProvider()


@pytest.fixture
def handle_factory() -> RecordingHandleFactory:
    return RecordingHandleFactory()


@pytest.fixture
def capture_manager(
    capture_provider: FakeCaptureProvider, handle_factory: RecordingHandleFactory
) -> CaptureArtifactManager:
    return CaptureArtifactManager(capture_provider, handle_factory=handle_factory)


# ---------------------------------------------------------------------------
# Classifier Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def productive_payload() -> VerdictPayload:
    return VerdictPayload(is_productive=True, confidence=0.9, reason="Editing source code")


@pytest.fixture
def mock_classifier(productive_payload: VerdictPayload) -> AsyncMock:
    """A mock Classifier answering 'productive' for every image."""
    classifier = AsyncMock(spec=Classifier)
    classifier.model = "mock-model"
    classifier.classify.return_value = productive_payload
    return classifier


@pytest.fixture
def gate(mock_classifier: AsyncMock) -> ClassifierGate:
    return ClassifierGate(mock_classifier)


# ---------------------------------------------------------------------------
# Device Fixtures
# ---------------------------------------------------------------------------


class FakeTransport(SerialTransport):
    """In-memory serial transport recording every call."""

    def __init__(self) -> None:
        self.ports = [
            PortDescriptor(name="COM3", kind="USB"),
            PortDescriptor(name="COM5", kind="Bluetooth"),
        ]
        self.open_name: str | None = None
        self.opened: list[str] = []
        self.closed = 0
        self.written: list[str] = []
        self.enumerate_error: Exception | None = None
        self.open_error: Exception | None = None
        self.write_error: Exception | None = None
        self.reply = "OK"

    async def enumerate_ports(self) -> list[PortDescriptor]:
        if self.enumerate_error is not None:
            raise self.enumerate_error
        return list(self.ports)

    async def open_port(self, name: str) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.opened.append(name)
        self.open_name = name

    async def close_port(self) -> None:
        self.closed += 1
        self.open_name = None

    async def write_command(self, text: str) -> str:
        if self.write_error is not None:
            raise self.write_error
        if self.open_name is None:
            raise TransportError("Serial port is not open")
        self.written.append(text)
        return self.reply


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def link(transport: FakeTransport) -> DeviceLink:
    return DeviceLink(transport)


# ---------------------------------------------------------------------------
# Scheduler Fixtures
# ---------------------------------------------------------------------------


class FakeTimer:
    def __init__(self, delay: float, callback) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimers:
    """Records call_later requests instead of scheduling them."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def __call__(self, delay: float, callback) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def armed(self) -> list[FakeTimer]:
        return [t for t in self.timers if not (t.cancelled or t.fired)]

    @property
    def last(self) -> FakeTimer:
        return self.timers[-1]

    def fire(self, timer: FakeTimer | None = None) -> None:
        timer = timer or self.last
        timer.fired = True
        timer.callback()


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def scheduler(
    capture_manager: CaptureArtifactManager,
    gate: ClassifierGate,
    link: DeviceLink,
    timers: FakeTimers,
) -> SensingScheduler:
    return SensingScheduler(capture_manager, gate, link, call_later=timers)
