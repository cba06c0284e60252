"""NMEA decoding: raw receiver lines to typed sentences."""

from .nmea_parser import NMEAParser, nmea_checksum, validate_checksum
from .nmea_types import (
    GroundSpeed,
    InvalidBytes,
    InvalidSentence,
    NoConnection,
    OtherSentence,
    PositionFix,
    RawSentence,
    SatelliteGeometry,
    SatelliteView,
)

__all__ = [
    "NMEAParser",
    "nmea_checksum",
    "validate_checksum",
    "RawSentence",
    "PositionFix",
    "SatelliteGeometry",
    "SatelliteView",
    "GroundSpeed",
    "OtherSentence",
    "InvalidSentence",
    "InvalidBytes",
    "NoConnection",
]
