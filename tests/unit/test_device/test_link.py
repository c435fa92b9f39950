"""Tests for the DeviceLink connection state machine."""

from __future__ import annotations

import asyncio

import pytest

from wheelaway.device.base import TransportError
from wheelaway.device.link import (
    AlreadyConnectingError,
    DeviceConnectionError,
    DeviceLink,
    NotConnectedError,
    TransportSendError,
)
from wheelaway.domain.models import ConnectionState, PortDescriptor


class TestEnumerate:
    @pytest.mark.asyncio
    async def test_ports_in_reported_order(self, link: DeviceLink) -> None:
        ports = await link.enumerate()
        assert ports == [
            PortDescriptor(name="COM3", kind="USB"),
            PortDescriptor(name="COM5", kind="Bluetooth"),
        ]
        assert link.ports == ports

    @pytest.mark.asyncio
    async def test_failure_yields_empty_catalog(self, link: DeviceLink, transport) -> None:
        await link.enumerate()
        transport.enumerate_error = TransportError("permission denied")

        assert await link.enumerate() == []
        assert link.ports == []
        assert "Failed to list serial ports" in link.snapshot.message


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_success(self, link: DeviceLink, transport) -> None:
        seen = []
        link.subscribe(lambda snap: seen.append(snap.state))

        snapshot = await link.connect("COM3")

        assert snapshot.state == ConnectionState.CONNECTED
        assert snapshot.port == "COM3"
        assert transport.opened == ["COM3"]
        assert seen == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]

    @pytest.mark.asyncio
    async def test_empty_port_rejected(self, link: DeviceLink, transport) -> None:
        with pytest.raises(DeviceConnectionError, match="No port selected"):
            await link.connect("")
        assert link.state == ConnectionState.DISCONNECTED
        assert link.snapshot.message == "No port selected"
        assert transport.opened == []

    @pytest.mark.asyncio
    async def test_open_failure_returns_to_disconnected(self, link: DeviceLink, transport) -> None:
        transport.open_error = TransportError("Access is denied")
        with pytest.raises(DeviceConnectionError, match="Access is denied"):
            await link.connect("COM3")
        assert link.state == ConnectionState.DISCONNECTED
        assert link.snapshot.port is None

    @pytest.mark.asyncio
    async def test_connect_while_connecting_rejected(self, transport) -> None:
        gate = asyncio.Event()
        original_open = transport.open_port

        async def slow_open(name: str) -> None:
            await gate.wait()
            await original_open(name)

        transport.open_port = slow_open
        link = DeviceLink(transport)

        first = asyncio.create_task(link.connect("COM3"))
        await asyncio.sleep(0)
        assert link.state == ConnectionState.CONNECTING

        with pytest.raises(AlreadyConnectingError):
            await link.connect("COM5")

        gate.set()
        await first
        assert link.snapshot.port == "COM3"

    @pytest.mark.asyncio
    async def test_disconnect_during_connect_wins(self, transport) -> None:
        gate = asyncio.Event()
        original_open = transport.open_port

        async def slow_open(name: str) -> None:
            await gate.wait()
            await original_open(name)

        transport.open_port = slow_open
        link = DeviceLink(transport)

        pending = asyncio.create_task(link.connect("COM3"))
        await asyncio.sleep(0)
        await link.disconnect()
        gate.set()

        with pytest.raises(DeviceConnectionError, match="cancelled"):
            await pending
        assert link.state == ConnectionState.DISCONNECTED
        assert transport.open_name is None

    @pytest.mark.asyncio
    async def test_switching_ports_closes_previous(self, link: DeviceLink, transport) -> None:
        await link.connect("COM3")
        await link.connect("COM5")
        assert transport.closed == 1
        assert link.snapshot.port == "COM5"
        assert link.is_connected


class TestSendCommand:
    @pytest.mark.asyncio
    async def test_send_while_disconnected(self, link: DeviceLink, transport) -> None:
        with pytest.raises(NotConnectedError):
            await link.send_command("ON")
        assert link.state == ConnectionState.DISCONNECTED
        assert transport.written == []

    @pytest.mark.asyncio
    async def test_send_returns_reply(self, link: DeviceLink, transport) -> None:
        transport.reply = "Motor ON"
        await link.connect("COM3")

        assert await link.send_command("ON") == "Motor ON"
        assert transport.written == ["ON"]
        assert link.snapshot.last_reply == "Motor ON"

    @pytest.mark.asyncio
    async def test_send_failure_keeps_connection(self, link: DeviceLink, transport) -> None:
        await link.connect("COM3")
        transport.write_error = TransportError("write timeout")

        with pytest.raises(TransportSendError, match="write timeout"):
            await link.send_command("BLINK")

        assert link.state == ConnectionState.CONNECTED
        assert "Command failed" in link.snapshot.message


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, link: DeviceLink, transport) -> None:
        await link.connect("COM3")
        await link.disconnect()
        await link.disconnect()
        assert link.state == ConnectionState.DISCONNECTED
        assert transport.open_name is None

    @pytest.mark.asyncio
    async def test_disconnect_never_raises(self, link: DeviceLink, transport) -> None:
        await link.connect("COM3")

        async def broken_close() -> None:
            raise TransportError("device unplugged")

        transport.close_port = broken_close
        await link.disconnect()
        assert link.state == ConnectionState.DISCONNECTED
        assert "device unplugged" in link.snapshot.message
