"""Device link module for wheelaway.

Manages the connection to the external serial device that the sensing
loop actuates, through a pluggable transport.

Public API:
    SerialTransport -- Abstract transport base class
    DeviceLink -- Connection state machine
    PySerialTransport -- pyserial implementation
"""

from wheelaway.device.base import SerialTransport, TransportError
from wheelaway.device.link import (
    AlreadyConnectingError,
    DeviceConnectionError,
    DeviceLink,
    DeviceLinkError,
    NotConnectedError,
    TransportSendError,
)

__all__ = [
    "AlreadyConnectingError",
    "DeviceConnectionError",
    "DeviceLink",
    "DeviceLinkError",
    "NotConnectedError",
    "PySerialTransport",
    "SerialTransport",
    "TransportError",
    "TransportSendError",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "PySerialTransport":
        from wheelaway.device.serial_transport import PySerialTransport
        return PySerialTransport
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
