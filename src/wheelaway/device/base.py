"""Abstract base class for the serial transport.

The transport does byte-level I/O with one physical port. It knows
nothing about connection state; the device link owns that.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from wheelaway.domain.models import PortDescriptor

logger = logging.getLogger(__name__)


class SerialTransport(ABC):
    """Abstract interface for talking to a line-oriented serial device.

    Example usage::

        transport = PySerialTransport(baudrate=9600)
        ports = await transport.enumerate_ports()
        await transport.open_port(ports[0].name)
        reply = await transport.write_command("ON")
        await transport.close_port()
    """

    @abstractmethod
    async def enumerate_ports(self) -> list[PortDescriptor]:
        """List discoverable ports in the order the OS reports them.

        Raises:
            TransportError: If the ports cannot be listed.
        """
        ...

    @abstractmethod
    async def open_port(self, name: str) -> None:
        """Open ``name``, closing any port opened earlier.

        Raises:
            TransportError: If the port cannot be opened.
        """
        ...

    @abstractmethod
    async def close_port(self) -> None:
        """Close the open port. Safe to call when nothing is open.

        Raises:
            TransportError: If closing reports an error.
        """
        ...

    @abstractmethod
    async def write_command(self, text: str) -> str:
        """Write one command line and return exactly one reply line.

        Raises:
            TransportError: If nothing is open, the write fails or no reply
                arrives in time.
        """
        ...


class TransportError(Exception):
    """Raised when serial I/O fails."""

    def __init__(self, message: str, port: str | None = None) -> None:
        super().__init__(message)
        self.port = port
