"""The sensing scheduler: capture -> classify -> actuate, repeatedly.

The scheduler owns the session lifecycle (idle/active) and drives the
cycle. There is no fixed-rate timer: each cycle, once fully finished,
arms a single one-shot timer for the next one, ``interval_ms`` after its
own completion. Two cycles can therefore never overlap, and a retuned
interval only affects the next arming decision.

Every armed timer carries the session epoch it was armed under. stop()
bumps the epoch, so a timer that fires late for an ended session does
nothing.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from datetime import datetime, timedelta
from typing import Callable, Protocol

from wheelaway.capture.base import CaptureError
from wheelaway.capture.manager import CaptureArtifactManager
from wheelaway.classifier.gate import ClassifierGate
from wheelaway.device.link import DeviceLink, DeviceLinkError
from wheelaway.domain.models import ClassificationVerdict, SensingSession, SessionState
from wheelaway.utils.events import ChangeNotifier

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 10_000
MIN_INTERVAL_MS = 5_000


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


CallLater = Callable[[float, Callable[[], None]], TimerHandle]


def _loop_call_later(delay: float, callback: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class SensingScheduler:
    """Orchestrates the periodic sensing cycle.

    Example usage::

        scheduler = SensingScheduler(manager, gate, link, interval_ms=10_000)
        scheduler.start()           # first cycle runs immediately
        scheduler.retune(15_000)    # applies from the next cycle on
        scheduler.stop()            # in-flight cycle finishes, nothing re-arms

    Must be used from within a running event loop.
    """

    def __init__(
        self,
        capture: CaptureArtifactManager,
        gate: ClassifierGate,
        link: DeviceLink,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        min_interval_ms: int = MIN_INTERVAL_MS,
        capture_failure_warn_threshold: int = 5,
        clock: Callable[[], datetime] = datetime.now,
        call_later: CallLater | None = None,
    ) -> None:
        if min_interval_ms <= 0:
            raise ValueError("min_interval_ms must be positive")
        if interval_ms < min_interval_ms:
            raise ValueError(f"Interval must be at least {min_interval_ms} ms, got {interval_ms}")
        self._capture = capture
        self._gate = gate
        self._link = link
        self._interval_ms = interval_ms
        self._min_interval_ms = min_interval_ms
        self._warn_threshold = capture_failure_warn_threshold
        self._clock = clock
        self._call_later = call_later or _loop_call_later

        self._state = SessionState.IDLE
        self._started_at: datetime | None = None
        self._epoch = 0
        self._timer: TimerHandle | None = None
        self._next_due: datetime | None = None
        self._cycle_task: asyncio.Task | None = None
        self._cycle_in_flight = False
        self._cycles_completed = 0
        self._capture_failures = 0
        self._notifier: ChangeNotifier[SensingSession] = ChangeNotifier("session")

    # ------------------------------------------------------------------
    # Read projections
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == SessionState.ACTIVE

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def min_interval_ms(self) -> int:
        return self._min_interval_ms

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def cycle_in_flight(self) -> bool:
        return self._cycle_in_flight

    @property
    def latest_verdict(self) -> ClassificationVerdict | None:
        return self._gate.latest

    @property
    def elapsed(self) -> timedelta:
        """Time since the session started, zero while idle."""
        if self._started_at is None:
            return timedelta(0)
        return max(self._clock() - self._started_at, timedelta(0))

    @property
    def snapshot(self) -> SensingSession:
        return SensingSession(
            state=self._state,
            started_at=self._started_at,
            interval_ms=self._interval_ms,
            cycle_in_flight=self._cycle_in_flight,
            cycles_completed=self._cycles_completed,
            consecutive_capture_failures=self._capture_failures,
            next_cycle_due=self._next_due,
        )

    def subscribe(self, listener: Callable[[SensingSession], None]) -> Callable[[], None]:
        return self._notifier.subscribe(listener)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Begin a session and run the first cycle right away.

        Returns:
            False if a session was already active.
        """
        if self._state == SessionState.ACTIVE:
            logger.debug("start() ignored, session already active")
            return False

        self._state = SessionState.ACTIVE
        self._started_at = self._clock()
        self._epoch += 1
        self._capture_failures = 0
        logger.info("Sensing started (interval %d ms, epoch %d)", self._interval_ms, self._epoch)
        self._publish()

        if not self._launch("session start"):
            # The running cycle re-arms on completion now that we are active
            logger.info("A cycle is already in flight; the session continues after it")
        return True

    def stop(self) -> bool:
        """End the session. An in-flight cycle finishes but does not re-arm.

        Returns:
            False if no session was active.
        """
        if self._state != SessionState.ACTIVE:
            logger.debug("stop() ignored, session not active")
            return False

        self._state = SessionState.IDLE
        self._started_at = None
        self._epoch += 1
        self._disarm()
        logger.info("Sensing stopped after %d cycles", self._cycles_completed)
        self._publish()
        return True

    def retune(self, interval_ms: int) -> None:
        """Change the interval used by the next arming decision.

        A timer that is already armed keeps its original deadline.

        Raises:
            ValueError: If ``interval_ms`` is below the lower bound.
        """
        if interval_ms < self._min_interval_ms:
            raise ValueError(
                f"Interval must be at least {self._min_interval_ms} ms, got {interval_ms}"
            )
        if interval_ms == self._interval_ms:
            return
        logger.info("Capture interval %d ms -> %d ms", self._interval_ms, interval_ms)
        self._interval_ms = interval_ms
        self._publish()

    async def analyze_now(self) -> bool:
        """Run one cycle on demand and wait for it.

        Returns:
            False if a cycle was already in flight; the request is dropped,
            not queued.
        """
        if not self._launch("manual request"):
            return False
        task = self._cycle_task
        if task is not None:
            await asyncio.shield(task)
        return True

    async def drain(self) -> None:
        """Wait for the in-flight cycle, if any, to finish."""
        task = self._cycle_task
        if task is not None:
            await asyncio.shield(task)

    async def aclose(self) -> None:
        """Stop the session and cancel any in-flight cycle (process teardown)."""
        self.stop()
        self._disarm()
        task = self._cycle_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        # A task cancelled before its first step never runs its finally block
        self._cycle_in_flight = False
        self._cycle_task = None

    # ------------------------------------------------------------------
    # Cycle execution
    # ------------------------------------------------------------------

    def _launch(self, reason: str) -> bool:
        if self._cycle_in_flight:
            logger.debug("Cycle already in flight, ignoring %s", reason)
            return False
        # Set before the task starts so a second trigger in the same tick is dropped
        self._cycle_in_flight = True
        logger.debug("Launching cycle (%s)", reason)
        self._cycle_task = asyncio.get_running_loop().create_task(self._run_cycle())
        self._publish()
        return True

    async def _run_cycle(self) -> None:
        cancelled = False
        try:
            await self._execute_cycle()
        except asyncio.CancelledError:
            cancelled = True
            raise
        except Exception:
            logger.exception("Unexpected error in sensing cycle")
        finally:
            self._cycle_in_flight = False
            self._cycle_task = None
            if not cancelled:
                self._cycles_completed += 1
                if self._state == SessionState.ACTIVE:
                    self._arm()
            self._publish()

    async def _execute_cycle(self) -> None:
        try:
            artifact = await self._capture.capture_once()
        except CaptureError as e:
            self._capture_failures += 1
            logger.error("Capture failed (%d in a row): %s", self._capture_failures, e)
            if self._capture_failures % self._warn_threshold == 0:
                logger.warning(
                    "%d consecutive capture failures; still sensing with the last good capture",
                    self._capture_failures,
                )
            return
        self._capture_failures = 0

        verdict = await self._gate.classify(artifact.data, artifact.media_type)
        if verdict is None:
            logger.info("Classifier busy, keeping the previous verdict")
            return

        await self._actuate(verdict)

    async def _actuate(self, verdict: ClassificationVerdict) -> None:
        if not self._link.is_connected:
            logger.debug("Device not connected, skipping actuation")
            return
        command = verdict.actuation_command
        try:
            reply = await self._link.send_command(command)
        except DeviceLinkError as e:
            logger.warning("Actuation command %s failed: %s", command, e)
            return
        logger.info("Actuated %s (device replied %r)", command, reply)

    # ------------------------------------------------------------------
    # Timer management
    # ------------------------------------------------------------------

    def _arm(self) -> None:
        self._disarm()
        epoch = self._epoch
        delay = self._interval_ms / 1000.0
        self._timer = self._call_later(delay, functools.partial(self._on_timer, epoch))
        self._next_due = self._clock() + timedelta(milliseconds=self._interval_ms)
        logger.debug("Next cycle in %.1fs (epoch %d)", delay, epoch)

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._next_due = None

    def _on_timer(self, epoch: int) -> None:
        if epoch != self._epoch or self._state != SessionState.ACTIVE:
            logger.debug("Ignoring stale timer from epoch %d", epoch)
            return
        self._timer = None
        self._next_due = None
        self._launch("scheduled")

    def _publish(self) -> None:
        self._notifier.notify(self.snapshot)
