"""Serial UART transport for GPS receivers.

Uses serial_asyncio for non-blocking I/O with UART receivers such as the
Adafruit Ultimate GPS (MTK3339) on ``/dev/serial0``.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Optional

import serial
import serial_asyncio

from ...core.logging_utils import get_module_logger
from ..constants import DEFAULT_BAUD_RATE
from .base_transport import BaseGPSTransport

logger = get_module_logger("SerialGPSTransport")


class SerialGPSTransport(BaseGPSTransport):
    """Serial UART transport for GPS receivers.

    Example:
        transport = SerialGPSTransport("/dev/serial0", 115200)
        async with transport:
            line = await transport.read_raw_line()
    """

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUD_RATE,
    ):
        """Initialize the serial transport.

        Args:
            port: Serial port path (e.g., '/dev/serial0' or '/dev/ttyUSB0')
            baudrate: Serial baudrate
        """
        super().__init__()
        self.port = port
        self.baudrate = baudrate

        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._last_error: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        """Check if the serial connection is open."""
        return self._connected and self._reader is not None

    @property
    def last_error(self) -> Optional[str]:
        """Get the last error message, if any."""
        return self._last_error

    async def connect(self) -> bool:
        """Open the serial connection.

        Returns:
            True if connection was successful
        """
        if self.is_connected:
            logger.debug("Already connected to %s", self.port)
            return True

        try:
            self._reader, self._writer = await serial_asyncio.open_serial_connection(
                url=self.port,
                baudrate=self.baudrate,
            )
        except asyncio.CancelledError:
            raise
        except (serial.SerialException, OSError, ValueError) as exc:
            self._last_error = str(exc)
            self._connected = False
            logger.warning(
                "Failed to open %s at %d baud: %s",
                self.port, self.baudrate, exc,
            )
            return False

        self._connected = True
        self._last_error = None
        logger.info("Connected to GPS on %s at %d baud", self.port, self.baudrate)
        return True

    async def disconnect(self) -> None:
        """Close the serial connection."""
        writer = self._writer
        self._writer = None
        self._reader = None
        self._connected = False

        if writer is None:
            return

        with contextlib.suppress(Exception):
            writer.close()

        try:
            await asyncio.wait_for(writer.wait_closed(), timeout=1.0)
        except asyncio.TimeoutError:
            logger.debug("Timeout waiting for serial close on %s", self.port)
        except (serial.SerialException, OSError) as exc:
            logger.debug("Error closing serial on %s: %s", self.port, exc)

        logger.info("Disconnected from GPS on %s", self.port)

    async def reopen(self, baudrate: int) -> bool:
        """Close the port and open it again at a different baud rate."""
        await self.disconnect()
        self.baudrate = baudrate
        return await self.connect()

    async def read_raw_line(self, timeout: float = 1.0) -> Optional[bytes]:
        """Read one line (NMEA sentence) from the GPS.

        Args:
            timeout: Maximum time to wait for a complete line

        Returns:
            The line without trailing CR/LF, or None on timeout or error.
            A read error or EOF also marks the transport disconnected.
        """
        if not self.is_connected or self._reader is None:
            return None

        try:
            line = await asyncio.wait_for(self._reader.readline(), timeout=timeout)
        except asyncio.TimeoutError:
            self._last_error = f"No data within {timeout:.1f}s"
            return None
        except asyncio.CancelledError:
            raise
        except (serial.SerialException, OSError) as exc:
            self._last_error = str(exc)
            self._connected = False
            logger.warning("Read error on %s: %s", self.port, exc)
            return None

        if not line:
            self._last_error = "Stream ended (EOF)"
            self._connected = False
            logger.warning("Serial stream ended on %s (EOF)", self.port)
            return None

        return line.rstrip(b"\r\n")

    async def write_line(self, line: str) -> bool:
        """Send one line (e.g. a PMTK command) to the GPS."""
        if not self.is_connected or self._writer is None:
            return False

        try:
            self._writer.write(line.encode("ascii") + b"\r\n")
            await self._writer.drain()
        except (serial.SerialException, OSError) as exc:
            self._last_error = str(exc)
            logger.warning("Write error on %s: %s", self.port, exc)
            return False
        return True
