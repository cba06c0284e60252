"""Unit tests for the serial transport."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import serial

from rpi_gps_recorder.gps_core.transports.base_transport import BaseGPSTransport
from rpi_gps_recorder.gps_core.transports.serial_transport import SerialGPSTransport

SERIAL_ASYNCIO = "rpi_gps_recorder.gps_core.transports.serial_transport.serial_asyncio"
GGA_LINE = b"$GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*47\r\n"


def open_connection_mock(reader=None, writer=None):
    reader = reader or AsyncMock()
    writer = writer or MagicMock()
    writer.wait_closed = AsyncMock()
    writer.drain = AsyncMock()
    return AsyncMock(return_value=(reader, writer)), reader, writer


class TestBaseGPSTransport:
    """Test the abstract base transport interface."""

    def test_interface_defined(self):
        for name in ("connect", "disconnect", "read_raw_line", "write_line", "is_connected"):
            assert hasattr(BaseGPSTransport, name)


class TestSerialGPSTransport:
    """Test the serial transport implementation."""

    def test_initialization(self):
        transport = SerialGPSTransport("/dev/serial0", 9600)
        assert transport.port == "/dev/serial0"
        assert transport.baudrate == 9600
        assert transport.is_connected is False
        assert transport.last_error is None

    def test_default_baudrate(self):
        assert SerialGPSTransport("/dev/serial0").baudrate == 115200

    @pytest.mark.asyncio
    async def test_connect_success(self):
        with patch(SERIAL_ASYNCIO) as mock_serial:
            mock_serial.open_serial_connection, _, _ = open_connection_mock()

            transport = SerialGPSTransport("/dev/serial0", 9600)
            assert await transport.connect() is True
            assert transport.is_connected is True
            mock_serial.open_serial_connection.assert_called_once_with(
                url="/dev/serial0",
                baudrate=9600,
            )

    @pytest.mark.asyncio
    async def test_connect_failure(self):
        with patch(SERIAL_ASYNCIO) as mock_serial:
            mock_serial.open_serial_connection = AsyncMock(
                side_effect=serial.SerialException("could not open port /dev/serial0")
            )

            transport = SerialGPSTransport("/dev/serial0", 9600)
            assert await transport.connect() is False
            assert transport.is_connected is False
            assert "could not open port" in transport.last_error

    @pytest.mark.asyncio
    async def test_disconnect(self):
        with patch(SERIAL_ASYNCIO) as mock_serial:
            mock_serial.open_serial_connection, _, writer = open_connection_mock()

            transport = SerialGPSTransport("/dev/serial0", 9600)
            await transport.connect()
            await transport.disconnect()

            assert transport.is_connected is False
            writer.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_reopen_changes_baud(self):
        with patch(SERIAL_ASYNCIO) as mock_serial:
            mock_serial.open_serial_connection, _, _ = open_connection_mock()

            transport = SerialGPSTransport("/dev/serial0", 9600)
            await transport.connect()
            assert await transport.reopen(115200) is True

            assert transport.baudrate == 115200
            assert mock_serial.open_serial_connection.call_args.kwargs["baudrate"] == 115200

    @pytest.mark.asyncio
    async def test_read_line_strips_terminator(self):
        with patch(SERIAL_ASYNCIO) as mock_serial:
            reader = AsyncMock()
            reader.readline = AsyncMock(return_value=GGA_LINE)
            mock_serial.open_serial_connection, _, _ = open_connection_mock(reader=reader)

            transport = SerialGPSTransport("/dev/serial0", 9600)
            await transport.connect()

            assert await transport.read_raw_line() == GGA_LINE.rstrip(b"\r\n")

    @pytest.mark.asyncio
    async def test_read_when_disconnected(self):
        transport = SerialGPSTransport("/dev/serial0", 9600)
        assert await transport.read_raw_line() is None

    @pytest.mark.asyncio
    async def test_read_timeout_keeps_connection(self):
        with patch(SERIAL_ASYNCIO) as mock_serial:
            reader = AsyncMock()

            async def never():
                await asyncio.sleep(10)

            reader.readline = never
            mock_serial.open_serial_connection, _, _ = open_connection_mock(reader=reader)

            transport = SerialGPSTransport("/dev/serial0", 9600)
            await transport.connect()

            assert await transport.read_raw_line(timeout=0.01) is None
            assert transport.is_connected is True
            assert "No data" in transport.last_error

    @pytest.mark.asyncio
    async def test_read_error_disconnects(self):
        with patch(SERIAL_ASYNCIO) as mock_serial:
            reader = AsyncMock()
            reader.readline = AsyncMock(side_effect=serial.SerialException("device reports readiness"))
            mock_serial.open_serial_connection, _, _ = open_connection_mock(reader=reader)

            transport = SerialGPSTransport("/dev/serial0", 9600)
            await transport.connect()

            assert await transport.read_raw_line() is None
            assert transport.is_connected is False

    @pytest.mark.asyncio
    async def test_eof_disconnects(self):
        with patch(SERIAL_ASYNCIO) as mock_serial:
            reader = AsyncMock()
            reader.readline = AsyncMock(return_value=b"")
            mock_serial.open_serial_connection, _, _ = open_connection_mock(reader=reader)

            transport = SerialGPSTransport("/dev/serial0", 9600)
            await transport.connect()

            assert await transport.read_raw_line() is None
            assert transport.is_connected is False

    @pytest.mark.asyncio
    async def test_write_line_appends_crlf(self):
        with patch(SERIAL_ASYNCIO) as mock_serial:
            mock_serial.open_serial_connection, _, writer = open_connection_mock()

            transport = SerialGPSTransport("/dev/serial0", 9600)
            await transport.connect()

            assert await transport.write_line("$PMTK220,500*2B") is True
            writer.write.assert_called_once_with(b"$PMTK220,500*2B\r\n")
            writer.drain.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_write_when_disconnected(self):
        transport = SerialGPSTransport("/dev/serial0", 9600)
        assert await transport.write_line("$PMTK220,500*2B") is False


@pytest.mark.hardware
class TestSerialHardware:
    """Requires a receiver on /dev/serial0."""

    @pytest.mark.asyncio
    async def test_reads_a_sentence(self):
        transport = SerialGPSTransport("/dev/serial0", 9600)
        async with transport:
            line = await transport.read_raw_line(timeout=3.0)
        assert line is not None
        assert line.startswith(b"$")
