"""Serial transport backed by pyserial.

Talks to an Arduino-style board over USB or Bluetooth serial. Commands
are newline-terminated text; the board answers each with one line.
"""

from __future__ import annotations

import asyncio
import logging

import serial
from serial.tools import list_ports
from serial.tools.list_ports_common import ListPortInfo

from wheelaway.device.base import SerialTransport, TransportError
from wheelaway.domain.models import PortDescriptor

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 9600
DEFAULT_TIMEOUT = 2.0
# Most boards reset when the port opens (DTR toggles)
DEFAULT_SETTLE_DELAY = 2.0


def port_kind(info: ListPortInfo) -> str:
    """Classify a port as USB, Bluetooth, PCI or Unknown."""
    text = f"{info.device} {info.description or ''} {info.hwid or ''}".lower()
    if "bluetooth" in text or "rfcomm" in text or "bthenum" in text:
        return "Bluetooth"
    if info.vid is not None:
        return "USB"
    if "pci" in text:
        return "PCI"
    return "Unknown"


class PySerialTransport(SerialTransport):
    """Line-oriented serial I/O using pyserial.

    Runs pyserial's blocking calls in a thread pool executor. All I/O on
    the port is serialized with a lock.
    """

    def __init__(
        self,
        baudrate: int = DEFAULT_BAUDRATE,
        timeout: float = DEFAULT_TIMEOUT,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
    ) -> None:
        self._baudrate = baudrate
        self._timeout = timeout
        self._settle_delay = settle_delay
        self._serial: serial.Serial | None = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    async def enumerate_ports(self) -> list[PortDescriptor]:
        loop = asyncio.get_running_loop()
        try:
            infos = await loop.run_in_executor(None, list_ports.comports)
        except Exception as e:
            raise TransportError(f"Failed to list serial ports: {e}") from e
        ports = [PortDescriptor(name=info.device, kind=port_kind(info)) for info in infos]
        logger.debug("Found %d serial ports", len(ports))
        return ports

    async def open_port(self, name: str) -> None:
        async with self._lock:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._open_sync, name)
            if self._settle_delay:
                await asyncio.sleep(self._settle_delay)
            await loop.run_in_executor(None, self._flush_sync)
        logger.info("Opened serial port %s @ %d baud", name, self._baudrate)

    async def close_port(self) -> None:
        async with self._lock:
            conn = self._serial
            self._serial = None
            if conn is None:
                return
            loop = asyncio.get_running_loop()
            try:
                await loop.run_in_executor(None, conn.close)
            except (serial.SerialException, OSError) as e:
                raise TransportError(f"Error closing {conn.port}: {e}", port=conn.port) from e
        logger.info("Closed serial port %s", conn.port)

    async def write_command(self, text: str) -> str:
        async with self._lock:
            if self._serial is None:
                raise TransportError("Serial port is not open")
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, self._exchange_sync, self._serial, text)

    def _open_sync(self, name: str) -> None:
        """Open the port (runs in thread pool)."""
        if self._serial is not None:
            try:
                self._serial.close()
            except (serial.SerialException, OSError) as e:
                logger.warning("Error closing previous port: %s", e)
            self._serial = None
        try:
            self._serial = serial.Serial(
                port=name,
                baudrate=self._baudrate,
                timeout=self._timeout,
                write_timeout=self._timeout,
            )
        except (serial.SerialException, ValueError, OSError) as e:
            raise TransportError(f"Cannot open {name}: {e}", port=name) from e

    def _flush_sync(self) -> None:
        if self._serial is None:
            return
        try:
            self._serial.reset_input_buffer()
            self._serial.reset_output_buffer()
        except (serial.SerialException, OSError) as e:
            logger.warning("Could not flush %s: %s", self._serial.port, e)

    @staticmethod
    def _exchange_sync(conn: serial.Serial, text: str) -> str:
        """Write one command and read one reply line (runs in thread pool)."""
        try:
            conn.reset_input_buffer()
            conn.write(f"{text}\n".encode("utf-8"))
            conn.flush()
            raw = conn.readline()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Serial I/O on {conn.port} failed: {e}", port=conn.port) from e
        if not raw:
            raise TransportError(f"No reply from {conn.port} to {text!r}", port=conn.port)
        reply = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        logger.debug("Sent %r, received %r", text, reply)
        return reply
