"""Abstract transport interface for line-oriented GPS receivers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class BaseGPSTransport(ABC):
    """Byte-line transport to a GPS receiver.

    Implementations deliver one NMEA line per ``read_raw_line`` call, without
    decoding, so that undecodable bytes can be reported as such.
    """

    def __init__(self) -> None:
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def last_error(self) -> Optional[str]:
        return None

    @abstractmethod
    async def connect(self) -> bool:
        """Open the connection. Returns True on success."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection. Safe to call when already closed."""

    @abstractmethod
    async def read_raw_line(self, timeout: float = 1.0) -> Optional[bytes]:
        """Return one line with line endings stripped, or None on timeout/error."""

    @abstractmethod
    async def write_line(self, line: str) -> bool:
        """Send one line terminated by CRLF. Returns True on success."""

    async def __aenter__(self) -> "BaseGPSTransport":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()
