"""Connection state machine for the external serial device.

The link is the only writer of the connection state. Transitions::

    disconnected -> connecting -> connected
                              \\-> disconnected   (open failed)
    any state    -> disconnected                 (disconnect)

Commands are only accepted while connected. A failed command does not
change the connection state; retry policy belongs to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from wheelaway.device.base import SerialTransport
from wheelaway.domain.models import ConnectionState, DeviceConnection, PortDescriptor
from wheelaway.utils.events import ChangeNotifier

logger = logging.getLogger(__name__)


class DeviceLink:
    """Owns the connection to one serial device.

    Example usage::

        link = DeviceLink(PySerialTransport())
        ports = await link.enumerate()
        await link.connect(ports[0].name)
        reply = await link.send_command("ON")
        await link.disconnect()
    """

    def __init__(self, transport: SerialTransport) -> None:
        self._transport = transport
        self._state = ConnectionState.DISCONNECTED
        self._port: str | None = None
        self._last_reply = ""
        self._message = ""
        self._ports: list[PortDescriptor] = []
        # Bumped by disconnect() so an in-flight connect can tell it was superseded
        self._attempt = 0
        self._notifier: ChangeNotifier[DeviceConnection] = ChangeNotifier("device")

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def ports(self) -> list[PortDescriptor]:
        """Port catalog from the last enumerate() call."""
        return list(self._ports)

    @property
    def snapshot(self) -> DeviceConnection:
        return DeviceConnection(
            state=self._state,
            port=self._port,
            last_reply=self._last_reply,
            message=self._message,
        )

    def subscribe(self, listener: Callable[[DeviceConnection], None]) -> Callable[[], None]:
        return self._notifier.subscribe(listener)

    async def enumerate(self) -> list[PortDescriptor]:
        """Refresh the port catalog. Never raises; failure yields []."""
        try:
            ports = await self._transport.enumerate_ports()
        except Exception as e:
            logger.warning("Failed to list serial ports: %s", e)
            self._ports = []
            self._message = f"Failed to list serial ports: {e}"
            self._publish()
            return []

        self._ports = list(ports)
        logger.info("Available serial ports: %s", ", ".join(p.name for p in self._ports) or "none")
        self._publish()
        return list(self._ports)

    async def connect(self, port: str) -> DeviceConnection:
        """Open ``port`` and enter the connected state.

        Raises:
            AlreadyConnectingError: If another connect is still in flight.
            DeviceConnectionError: If ``port`` is empty or the open fails.
        """
        if self._state == ConnectionState.CONNECTING:
            raise AlreadyConnectingError(f"Already connecting to {self._port}")
        if not port:
            self._message = "No port selected"
            self._publish()
            raise DeviceConnectionError("No port selected")

        previous = self._port if self._state == ConnectionState.CONNECTED else None

        self._attempt += 1
        attempt = self._attempt
        self._transition(ConnectionState.CONNECTING, port=port, message=f"Connecting to {port}")

        if previous is not None:
            logger.info("Switching from %s to %s", previous, port)
            await self._close_transport()

        try:
            await self._transport.open_port(port)
        except asyncio.CancelledError:
            self._transition(ConnectionState.DISCONNECTED, message="Connection cancelled")
            raise
        except Exception as e:
            logger.error("Failed to connect to %s: %s", port, e)
            if attempt == self._attempt:
                self._transition(ConnectionState.DISCONNECTED, message=f"Connection failed: {e}")
            raise DeviceConnectionError(f"Connection to {port} failed: {e}", port=port) from e

        if attempt != self._attempt:
            # disconnect() ran while the port was opening
            await self._close_transport()
            raise DeviceConnectionError(f"Connection to {port} cancelled by disconnect", port=port)

        self._last_reply = ""
        self._transition(ConnectionState.CONNECTED, port=port, message=f"Connected to {port}")
        logger.info("Connected to device on %s", port)
        return self.snapshot

    async def disconnect(self) -> None:
        """Enter the disconnected state. Idempotent; never raises."""
        self._attempt += 1
        previous = self._port
        error = await self._close_transport()
        if error is not None:
            message = f"Disconnect error: {error}"
        elif previous:
            message = f"Disconnected from {previous}"
        else:
            message = "Disconnected"
        self._transition(ConnectionState.DISCONNECTED, message=message)

    async def send_command(self, text: str) -> str:
        """Send one command and return the device's reply line.

        Raises:
            NotConnectedError: If the link is not connected.
            TransportSendError: If the write or reply fails. The link
                stays connected.
        """
        if self._state != ConnectionState.CONNECTED:
            raise NotConnectedError(f"Cannot send {text!r}: device is {self._state.value}")

        try:
            reply = await self._transport.write_command(text)
        except Exception as e:
            logger.error("Failed to send command %s: %s", text, e)
            self._message = f"Command failed: {e}"
            self._publish()
            raise TransportSendError(f"Command {text!r} failed: {e}", port=self._port) from e

        logger.debug("Command %s -> %s", text, reply)
        self._last_reply = reply
        self._message = f"Sent {text}"
        self._publish()
        return reply

    async def _close_transport(self) -> Exception | None:
        try:
            await self._transport.close_port()
        except Exception as e:
            logger.warning("Error while closing %s: %s", self._port, e)
            return e
        return None

    def _transition(
        self,
        state: ConnectionState,
        port: str | None = None,
        message: str = "",
    ) -> None:
        logger.debug("Device link %s -> %s", self._state.value, state.value)
        self._state = state
        self._port = port if state != ConnectionState.DISCONNECTED else None
        self._message = message
        self._publish()

    def _publish(self) -> None:
        self._notifier.notify(self.snapshot)


class DeviceLinkError(Exception):
    """Base class for device link failures."""

    def __init__(self, message: str, port: str | None = None) -> None:
        super().__init__(message)
        self.port = port


class DeviceConnectionError(DeviceLinkError):
    """Raised when a port is missing or cannot be opened."""


class NotConnectedError(DeviceLinkError):
    """Raised when a command is issued while not connected."""


class AlreadyConnectingError(DeviceLinkError):
    """Raised when connect() is called while another connect is in flight."""


class TransportSendError(DeviceLinkError):
    """Raised when writing a command or reading its reply fails."""
