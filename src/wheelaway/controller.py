"""Application controller tying the components together.

The controller is the surface the presentation layer talks to. Every
command returns a CommandResult instead of raising for expected
failures, and status() gives a consistent read projection of all
components.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from wheelaway.capture.manager import CaptureArtifactManager
from wheelaway.classifier.gate import ClassifierGate
from wheelaway.config.settings import Settings
from wheelaway.device.link import DeviceLink, DeviceLinkError
from wheelaway.domain.models import AppStatus, CommandResult
from wheelaway.pointer.sampler import PointerSampler
from wheelaway.sensing.scheduler import SensingScheduler

logger = logging.getLogger(__name__)


def format_duration(elapsed: timedelta) -> str:
    """Format a duration as HH:MM:SS."""
    seconds = max(int(elapsed.total_seconds()), 0)
    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


class WheelAway:
    """Facade over the capture manager, classifier gate, device link,
    sensing scheduler and pointer sampler."""

    def __init__(
        self,
        capture: CaptureArtifactManager,
        gate: ClassifierGate,
        link: DeviceLink,
        scheduler: SensingScheduler,
        pointer: PointerSampler | None = None,
        default_port: str | None = None,
    ) -> None:
        self.capture = capture
        self.gate = gate
        self.link = link
        self.scheduler = scheduler
        self.pointer = pointer
        self._default_port = default_port

    @classmethod
    def from_settings(cls, settings: Settings) -> WheelAway:
        """Build the production component graph from settings."""
        from wheelaway.capture.screen import ScreenCaptureProvider
        from wheelaway.classifier.openai import OpenAIClassifier
        from wheelaway.device.serial_transport import PySerialTransport
        from wheelaway.pointer.pynput_provider import PynputPointerProvider

        provider = ScreenCaptureProvider(
            monitor=settings.capture.monitor,
            image_format=settings.capture.image_format,
            max_height=settings.capture.max_height,
            jpeg_quality=settings.capture.jpeg_quality,
        )
        capture = CaptureArtifactManager(provider)

        api_key = settings.classifier_api_key()
        if not api_key:
            logger.warning("No classifier API key configured; every verdict will be the fallback")
        classifier = OpenAIClassifier(
            api_key=api_key,
            model=settings.classifier.model,
            base_url=settings.classifier.base_url,
            instruction=settings.classifier.instruction_override,
            max_tokens=settings.classifier.max_tokens,
        )
        gate = ClassifierGate(classifier)

        link = DeviceLink(
            PySerialTransport(
                baudrate=settings.device.baudrate,
                timeout=settings.device.timeout,
                settle_delay=settings.device.settle_delay,
            )
        )

        scheduler = SensingScheduler(
            capture,
            gate,
            link,
            interval_ms=settings.sensing.interval_ms,
            min_interval_ms=settings.sensing.min_interval_ms,
            capture_failure_warn_threshold=settings.sensing.capture_failure_warn_threshold,
        )
        pointer = PointerSampler(PynputPointerProvider(), interval_ms=settings.pointer.interval_ms)

        return cls(
            capture=capture,
            gate=gate,
            link=link,
            scheduler=scheduler,
            pointer=pointer,
            default_port=settings.device.default_port,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def startup(self) -> None:
        """Discover serial ports so the presentation layer can offer them."""
        await self.link.enumerate()
        logger.info("wheelaway ready")

    async def shutdown(self) -> None:
        """Tear everything down: session, pointer, device, captures."""
        await self.scheduler.aclose()
        if self.pointer is not None:
            await self.pointer.aclose()
        await self.link.disconnect()
        self.capture.dispose()
        logger.info("wheelaway shut down")

    # ------------------------------------------------------------------
    # Session commands
    # ------------------------------------------------------------------

    async def start(self) -> CommandResult:
        if not self.scheduler.start():
            return CommandResult(success=False, message="Sensing is already active")
        return CommandResult(success=True, message="Sensing started")

    async def stop(self) -> CommandResult:
        if not self.scheduler.stop():
            return CommandResult(success=False, message="Sensing is not active")
        return CommandResult(success=True, message="Sensing stopped")

    async def retune(self, interval_ms: int) -> CommandResult:
        try:
            self.scheduler.retune(interval_ms)
        except ValueError as e:
            return CommandResult(success=False, message=str(e))
        return CommandResult(success=True, message=f"Interval set to {interval_ms} ms")

    async def manual_capture(self) -> CommandResult:
        previous = self.gate.latest
        if not await self.scheduler.analyze_now():
            return CommandResult(success=False, message="A capture is already in progress")
        verdict = self.gate.latest
        if verdict is None or verdict is previous:
            return CommandResult(success=False, message="Capture failed; keeping the previous verdict")
        if verdict.is_fallback:
            return CommandResult(success=False, message="Classification failed")
        label = "Productive" if verdict.is_productive else "Not Productive"
        return CommandResult(success=True, message=f"{label}: {verdict.reason}")

    # ------------------------------------------------------------------
    # Device commands
    # ------------------------------------------------------------------

    async def refresh_ports(self) -> CommandResult:
        ports = await self.link.enumerate()
        return CommandResult(success=True, message=f"Found {len(ports)} serial ports")

    async def connect(self, port: str | None = None) -> CommandResult:
        target = port if port is not None else (self._default_port or "")
        try:
            await self.link.connect(target)
        except DeviceLinkError as e:
            return CommandResult(success=False, message=str(e))
        return CommandResult(success=True, message=f"Connected to {target}")

    async def disconnect(self) -> CommandResult:
        await self.link.disconnect()
        return CommandResult(success=True, message=self.link.snapshot.message)

    async def send_raw(self, command: str) -> CommandResult:
        try:
            reply = await self.link.send_command(command)
        except DeviceLinkError as e:
            return CommandResult(success=False, message=str(e))
        return CommandResult(success=True, message=reply)

    # ------------------------------------------------------------------
    # Pointer commands
    # ------------------------------------------------------------------

    async def start_tracking(self) -> CommandResult:
        if self.pointer is None:
            return CommandResult(success=False, message="Pointer tracking is not available")
        if not self.pointer.start_tracking():
            return CommandResult(success=False, message="Pointer tracking is already on")
        return CommandResult(success=True, message="Pointer tracking started")

    async def stop_tracking(self) -> CommandResult:
        if self.pointer is None:
            return CommandResult(success=False, message="Pointer tracking is not available")
        if not self.pointer.stop_tracking():
            return CommandResult(success=False, message="Pointer tracking is already off")
        return CommandResult(success=True, message="Pointer tracking stopped")

    # ------------------------------------------------------------------
    # Read projection
    # ------------------------------------------------------------------

    def status(self) -> AppStatus:
        elapsed = self.scheduler.elapsed
        return AppStatus(
            session=self.scheduler.snapshot,
            elapsed=elapsed,
            elapsed_display=format_duration(elapsed),
            connection=self.link.snapshot,
            ports=self.link.ports,
            verdict=self.gate.latest,
            classifying=self.gate.busy,
            artifact=self.capture.info(),
            pointer=self.pointer.position if self.pointer else None,
            pointer_tracking=self.pointer.is_tracking if self.pointer else False,
        )
