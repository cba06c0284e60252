"""NMEA 0183 sentence decoding.

Each line read from the receiver is decoded into exactly one ``RawSentence``
variant. The decoder keeps no fix state between sentences; combining
readings into a fix is the normalizer's job.
"""

from __future__ import annotations

import datetime as dt
from typing import Optional

from ..constants import FIX_MODE_MAP
from .nmea_types import (
    GroundSpeed,
    InvalidBytes,
    InvalidSentence,
    OtherSentence,
    PositionFix,
    RawSentence,
    SatelliteGeometry,
    SatelliteView,
)


def _parse_float(value: str | None) -> Optional[float]:
    """Parse string to float, None on failure."""
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _parse_int(value: str | None) -> Optional[int]:
    """Parse string to int, None on failure."""
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_latlon(
    value: str | None,
    direction: str | None,
    *,
    is_lat: bool
) -> Optional[float]:
    """Parse NMEA lat/lon format (DDMM.MMMM or DDDMM.MMMM) to decimal degrees."""
    if not value or not direction:
        return None
    deg_len = 2 if is_lat else 3
    if len(value) < deg_len:
        return None
    try:
        degrees = int(value[:deg_len])
        minutes = float(value[deg_len:])
    except ValueError:
        return None
    decimal = degrees + minutes / 60.0
    if direction.upper() in {"S", "W"}:
        decimal = -decimal
    return decimal


def _parse_hms(value: str | None) -> Optional[dt.time]:
    """Parse NMEA time format (HHMMSS.sss) to a UTC datetime.time."""
    raw = (value or "").strip()
    if not raw:
        return None
    main, dot, frac = raw.partition(".")
    main = main.rjust(6, "0")
    try:
        hour = int(main[0:2])
        minute = int(main[2:4])
        second = int(main[4:6])
        micro = int((frac[:6] if dot else "0").ljust(6, "0"))
        return dt.time(hour, minute, second, micro, tzinfo=dt.timezone.utc)
    except ValueError:
        return None


def nmea_checksum(payload: str) -> str:
    """Return the two-digit hex XOR checksum of the text between ``$`` and ``*``."""
    calculated = 0
    for char in payload:
        calculated ^= ord(char)
    return f"{calculated:02X}"


def validate_checksum(sentence: str) -> bool:
    """Validate NMEA checksum."""
    if not sentence.startswith("$") or "*" not in sentence:
        return False
    payload, checksum_str = sentence[1:].split("*", 1)
    try:
        expected = int(checksum_str[:2], 16)
    except ValueError:
        return False
    return int(nmea_checksum(payload), 16) == expected


class NMEAParser:
    """Decodes NMEA lines into typed sentences.

    Talker IDs are ignored (GP, GN, GL... all map to the same sentence type).
    Proprietary sentences (``$P...``) and unconsumed standard types are
    returned as ``OtherSentence``.
    """

    def __init__(self, validate_checksums: bool = True):
        self._validate_checksums = validate_checksums

    def parse_bytes(self, data: bytes) -> RawSentence:
        """Decode one raw line from the serial port."""
        try:
            text = data.decode("ascii")
        except UnicodeDecodeError:
            return InvalidBytes(data=bytes(data))
        return self.parse_sentence(text)

    def parse_sentence(self, sentence: str) -> RawSentence:
        """Decode one NMEA sentence."""
        sentence = sentence.strip()
        if not sentence.startswith("$"):
            return InvalidSentence(raw=sentence, reason="missing '$' prefix")

        if self._validate_checksums and not validate_checksum(sentence):
            return InvalidSentence(raw=sentence, reason="checksum mismatch")

        payload = sentence[1:].split("*", 1)[0]
        parts = payload.split(",")
        header = parts[0].upper()
        if len(header) < 3:
            return InvalidSentence(raw=sentence, reason=f"bad header '{parts[0]}'")

        if header.startswith("P"):
            return OtherSentence(sentence_type=header, raw=sentence)

        # Message type is the last 3 chars of the header, e.g. "GGA" from "GPGGA"
        message_type = header[-3:]
        handler = getattr(self, f"_parse_{message_type.lower()}", None)
        if handler is None:
            return OtherSentence(sentence_type=message_type, raw=sentence)

        decoded = handler(parts[1:], sentence)
        if decoded is None:
            return InvalidSentence(raw=sentence, reason=f"truncated {message_type} sentence")
        return decoded

    # ------------------------------------------------------------------
    # Sentence-specific parsers
    # ------------------------------------------------------------------

    def _parse_gga(self, fields: list[str], raw: str) -> Optional[PositionFix]:
        """Parse $GPGGA: time, position, fix quality, satellites, HDOP, altitude."""
        if len(fields) < 9:
            return None

        return PositionFix(
            utc_time=_parse_hms(fields[0]),
            latitude=_parse_latlon(fields[1], fields[2], is_lat=True),
            longitude=_parse_latlon(fields[3], fields[4], is_lat=False),
            fix_quality=_parse_int(fields[5]),
            satellites_used=_parse_int(fields[6]) or 0,
            hdop=_parse_float(fields[7]),
            altitude_m=_parse_float(fields[8]),
            raw=raw,
        )

    def _parse_gsa(self, fields: list[str], raw: str) -> Optional[SatelliteGeometry]:
        """Parse $GPGSA: fix mode, PDOP, HDOP, VDOP."""
        if len(fields) < 17:
            return None

        fix_type = _parse_int(fields[1])
        return SatelliteGeometry(
            fix_mode=FIX_MODE_MAP.get(fix_type or 0),
            pdop=_parse_float(fields[14]),
            hdop=_parse_float(fields[15]),
            vdop=_parse_float(fields[16]),
            raw=raw,
        )

    def _parse_gsv(self, fields: list[str], raw: str) -> Optional[SatelliteView]:
        """Parse $GPGSV: satellites in view and per-satellite SNR."""
        if len(fields) < 3:
            return None

        # Satellite blocks of (PRN, elevation, azimuth, SNR) start at field 3
        snr = tuple(
            _parse_float(fields[index])
            for index in range(6, len(fields), 4)
        )
        return SatelliteView(
            satellites_in_view=_parse_int(fields[2]),
            snr=snr,
            raw=raw,
        )

    def _parse_vtg(self, fields: list[str], raw: str) -> Optional[GroundSpeed]:
        """Parse $GPVTG: course and ground speed."""
        if len(fields) < 7:
            return None

        return GroundSpeed(
            course_deg=_parse_float(fields[0]),
            speed_knots=_parse_float(fields[4]),
            speed_kmh=_parse_float(fields[6]),
            raw=raw,
        )
