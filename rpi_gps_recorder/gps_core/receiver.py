"""PMTK commands for configuring MTK3339-family receivers at startup."""

from __future__ import annotations

import asyncio

from ..core.logging_utils import get_module_logger
from .constants import BAUD_SWITCH_PAUSE_S, DEFAULT_BAUD_RATE, DEFAULT_UPDATE_RATE_MS
from .parsers.nmea_parser import nmea_checksum
from .transports.serial_transport import SerialGPSTransport

logger = get_module_logger("Receiver")

# PMTK314 carries 19 frequency fields; 6..17 are reserved and stay 0
PMTK314_FIELD_COUNT = 19
PMTK314_CHN_INDEX = 18


def pmtk_command(body: str) -> str:
    """Frame a PMTK body as ``$<body>*<checksum>``."""
    return f"${body}*{nmea_checksum(body)}"


def set_baud_rate_command(baud_rate: int) -> str:
    return pmtk_command(f"PMTK251,{baud_rate}")


def set_update_rate_command(update_rate_ms: int) -> str:
    return pmtk_command(f"PMTK220,{update_rate_ms}")


def set_nmea_output_command(
    gll: int = 1,
    rmc: int = 1,
    vtg: int = 1,
    gga: int = 1,
    gsa: int = 1,
    gsv: int = 1,
    chn_interval: int = 1,
) -> str:
    """Sentence output mix; each value is "emit every N fixes", 0 disables."""
    fields = [0] * PMTK314_FIELD_COUNT
    fields[0:6] = [gll, rmc, vtg, gga, gsa, gsv]
    fields[PMTK314_CHN_INDEX] = chn_interval
    return pmtk_command("PMTK314," + ",".join(str(value) for value in fields))


async def configure_receiver(
    transport: SerialGPSTransport,
    *,
    initial_baud_rate: int,
    baud_rate: int = DEFAULT_BAUD_RATE,
    update_rate_ms: int = DEFAULT_UPDATE_RATE_MS,
    pause_s: float = BAUD_SWITCH_PAUSE_S,
) -> bool:
    """Switch the receiver to ``baud_rate`` and set its output mix and rate.

    The transport is left open at ``baud_rate``. Returns False if the port
    could not be reopened; failures to send individual commands are logged
    but not fatal since the receiver may already be configured.
    """
    if initial_baud_rate != baud_rate:
        if transport.baudrate != initial_baud_rate or not transport.is_connected:
            if not await transport.reopen(initial_baud_rate):
                logger.warning("Could not open %s at %d baud", transport.port, initial_baud_rate)
        if transport.is_connected:
            command = set_baud_rate_command(baud_rate)
            if not await transport.write_line(command):
                logger.warning("Failed to send baud rate command %s", command)
        await asyncio.sleep(pause_s)
        if not await transport.reopen(baud_rate):
            return False
    elif not transport.is_connected and not await transport.connect():
        return False

    output_command = set_nmea_output_command()
    if not await transport.write_line(output_command):
        logger.warning("Failed to set NMEA output mix")

    rate_command = set_update_rate_command(update_rate_ms)
    rate_result = await transport.write_line(rate_command)
    logger.info("Set update rate to %dms: %s", update_rate_ms, rate_result)
    return True
