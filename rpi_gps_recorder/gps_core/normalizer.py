"""Builds canonical fixes from GGA sentences plus recent auxiliary readings."""

from __future__ import annotations

import datetime as dt
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .constants import DEFAULT_SOURCE_TAG, DEFAULT_STALENESS_S, KMH_PER_KNOT, MPS_PER_KMH
from .models import Fix, FixQuality
from .parsers.nmea_types import GroundSpeed, PositionFix, SatelliteGeometry

FIX_QUALITY_SOURCES = ("satellites", "gsa")


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class AuxiliaryState:
    """Most recent speed and DOP readings with their monotonic receipt times.

    Lives for the whole process; only a restart clears it.
    """

    speed_kmh: Optional[float] = None
    speed_received_at: Optional[float] = None
    pdop: Optional[float] = None
    hdop: Optional[float] = None
    vdop: Optional[float] = None
    fix_mode: Optional[str] = None
    dop_received_at: Optional[float] = None

    @staticmethod
    def _is_fresh(received_at: Optional[float], now: float, window_s: float) -> bool:
        return received_at is not None and now - received_at < window_s

    def speed_is_fresh(self, now: float, window_s: float) -> bool:
        return self._is_fresh(self.speed_received_at, now, window_s)

    def dop_is_fresh(self, now: float, window_s: float) -> bool:
        return self._is_fresh(self.dop_received_at, now, window_s)


class FixNormalizer:
    """Turns a ``PositionFix`` into a ``Fix``.

    Speed and DOP from VTG/GSA sentences are attached only while they are
    younger than the staleness window. Fix timestamps come from the system
    clock at receipt, since GGA carries no date.

    Fix quality defaults to the satellite-count rule (exactly 3 satellites
    means 2D, anything else 3D). With ``fix_quality_source="gsa"`` the mode
    from a fresh GSA sentence is used instead, falling back to the
    satellite-count rule when no fresh GSA mode is known.
    """

    def __init__(
        self,
        staleness_s: float = DEFAULT_STALENESS_S,
        source_tag: Optional[str] = DEFAULT_SOURCE_TAG,
        fix_quality_source: str = "satellites",
        clock: Callable[[], dt.datetime] = _utc_now,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        if fix_quality_source not in FIX_QUALITY_SOURCES:
            raise ValueError(
                f"fix_quality_source must be one of {FIX_QUALITY_SOURCES}, got {fix_quality_source!r}"
            )
        self.staleness_s = staleness_s
        self.source_tag = source_tag
        self.fix_quality_source = fix_quality_source
        self._clock = clock
        self._monotonic = monotonic
        self.state = AuxiliaryState()

    def observe_speed(self, sentence: GroundSpeed) -> None:
        """Remember a VTG reading (stored in km/h)."""
        speed_kmh = sentence.speed_kmh
        if speed_kmh is None and sentence.speed_knots is not None:
            speed_kmh = sentence.speed_knots * KMH_PER_KNOT
        self.state.speed_kmh = speed_kmh
        self.state.speed_received_at = self._monotonic()

    def observe_geometry(self, sentence: SatelliteGeometry) -> None:
        """Remember a GSA reading."""
        self.state.pdop = sentence.pdop
        self.state.hdop = sentence.hdop
        self.state.vdop = sentence.vdop
        self.state.fix_mode = sentence.fix_mode
        self.state.dop_received_at = self._monotonic()

    def normalize(self, sentence: PositionFix) -> Optional[Fix]:
        """Build a Fix, or return None when the sentence reports no fix."""
        if not sentence.has_fix():
            return None

        now = self._monotonic()
        state = self.state
        dop_fresh = state.dop_is_fresh(now, self.staleness_s)

        speed_mps = None
        if state.speed_kmh is not None and state.speed_is_fresh(now, self.staleness_s):
            speed_mps = state.speed_kmh * MPS_PER_KMH

        return Fix(
            timestamp=self._clock(),
            latitude=sentence.latitude,
            longitude=sentence.longitude,
            elevation=sentence.altitude_m,
            fix_quality=self._fix_quality(sentence, dop_fresh),
            satellites=sentence.satellites_used,
            hdop=state.hdop if dop_fresh else None,
            vdop=state.vdop if dop_fresh else None,
            pdop=state.pdop if dop_fresh else None,
            speed_mps=speed_mps,
            source=self.source_tag,
        )

    def _fix_quality(self, sentence: PositionFix, dop_fresh: bool) -> FixQuality:
        if self.fix_quality_source == "gsa" and dop_fresh and self.state.fix_mode in ("2d", "3d"):
            return FixQuality(self.state.fix_mode)
        if sentence.satellites_used == 3:
            return FixQuality.TWO_D
        return FixQuality.THREE_D
