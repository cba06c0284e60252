"""Typed NMEA sentences produced by the decoder.

``RawSentence`` is a closed union: every line read from the receiver becomes
exactly one of these variants, including the three error states.
"""

from dataclasses import dataclass
import datetime as dt
from typing import Optional, Union

from ..constants import GGA_NO_FIX


@dataclass(frozen=True, slots=True)
class PositionFix:
    """$--GGA: time, position, fix quality, satellites used, altitude."""

    utc_time: Optional[dt.time] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    fix_quality: Optional[int] = None
    satellites_used: int = 0
    hdop: Optional[float] = None
    altitude_m: Optional[float] = None
    raw: str = ""

    def has_fix(self) -> bool:
        """Return True if the receiver reports a usable position."""
        return (
            self.fix_quality is not None
            and self.fix_quality != GGA_NO_FIX
            and self.latitude is not None
            and self.longitude is not None
        )


@dataclass(frozen=True, slots=True)
class SatelliteGeometry:
    """$--GSA: fix mode and dilution of precision."""

    fix_mode: Optional[str] = None
    pdop: Optional[float] = None
    hdop: Optional[float] = None
    vdop: Optional[float] = None
    raw: str = ""


@dataclass(frozen=True, slots=True)
class SatelliteView:
    """$--GSV: one page of the satellites-in-view listing."""

    satellites_in_view: Optional[int] = None
    snr: tuple[Optional[float], ...] = ()
    raw: str = ""


@dataclass(frozen=True, slots=True)
class GroundSpeed:
    """$--VTG: course and speed over ground."""

    course_deg: Optional[float] = None
    speed_knots: Optional[float] = None
    speed_kmh: Optional[float] = None
    raw: str = ""


@dataclass(frozen=True, slots=True)
class OtherSentence:
    """A valid sentence of a type the recorder does not consume (RMC, GLL, PMTK...)."""

    sentence_type: str
    raw: str = ""


@dataclass(frozen=True, slots=True)
class InvalidSentence:
    """Text that is not a well-formed NMEA sentence or fails its checksum."""

    raw: str = ""
    reason: str = ""


@dataclass(frozen=True, slots=True)
class InvalidBytes:
    """Bytes that could not be decoded as ASCII."""

    data: bytes = b""


@dataclass(frozen=True, slots=True)
class NoConnection:
    """The serial port is closed or stopped delivering data."""

    reason: str = ""


RawSentence = Union[
    PositionFix,
    SatelliteGeometry,
    SatelliteView,
    GroundSpeed,
    OtherSentence,
    InvalidSentence,
    InvalidBytes,
    NoConnection,
]
