"""Track data models: fixes, segments and durable log records."""

from __future__ import annotations

import datetime as dt
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from .errors import CorruptRecordError


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


class FixQuality(str, Enum):
    """GPX fix type of a retained point."""
    NONE = "none"
    TWO_D = "2d"
    THREE_D = "3d"


@dataclass(frozen=True, slots=True)
class Fix:
    """One normalized position sample.

    A Fix always carries a position; there is no Fix for a no-fix sentence.
    """

    timestamp: dt.datetime
    latitude: float
    longitude: float
    fix_quality: FixQuality = FixQuality.THREE_D
    satellites: int = 0
    elevation: Optional[float] = None
    hdop: Optional[float] = None
    vdop: Optional[float] = None
    pdop: Optional[float] = None
    speed_mps: Optional[float] = None
    source: Optional[str] = None

    def __post_init__(self) -> None:
        if self.fix_quality is FixQuality.NONE:
            raise ValueError("A Fix cannot be built without a position fix")
        if self.timestamp.tzinfo is None:
            raise ValueError("Fix timestamps must be timezone-aware")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.timestamp.isoformat(),
            "lat": self.latitude,
            "lon": self.longitude,
            "ele": self.elevation,
            "fix": self.fix_quality.value,
            "sat": self.satellites,
            "hdop": self.hdop,
            "vdop": self.vdop,
            "pdop": self.pdop,
            "speed": self.speed_mps,
            "src": self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Fix":
        return cls(
            timestamp=dt.datetime.fromisoformat(data["time"]),
            latitude=float(data["lat"]),
            longitude=float(data["lon"]),
            elevation=_optional_float(data.get("ele")),
            fix_quality=FixQuality(data.get("fix", FixQuality.THREE_D.value)),
            satellites=int(data.get("sat") or 0),
            hdop=_optional_float(data.get("hdop")),
            vdop=_optional_float(data.get("vdop")),
            pdop=_optional_float(data.get("pdop")),
            speed_mps=_optional_float(data.get("speed")),
            source=data.get("src"),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json(cls, payload: str) -> "Fix":
        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        return cls.from_dict(data)


@dataclass
class Segment:
    """An ordered run of retained fixes destined for one ``<trkseg>``.

    Points are kept in insertion order. Once sealed the segment is immutable
    and belongs to whoever exports it.
    """

    points: List[Fix] = field(default_factory=list)
    sealed: bool = False

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[Fix]:
        return iter(self.points)

    def __bool__(self) -> bool:
        return bool(self.points)

    @property
    def first(self) -> Optional[Fix]:
        return self.points[0] if self.points else None

    @property
    def last(self) -> Optional[Fix]:
        return self.points[-1] if self.points else None

    def append(self, fix: Fix) -> None:
        if self.sealed:
            raise RuntimeError("Cannot append to a sealed segment")
        self.points.append(fix)

    def seal(self) -> "Segment":
        self.sealed = True
        return self


@dataclass(frozen=True, slots=True)
class LogRecord:
    """One row of the durable log."""

    id: int
    payload: str
    created_at: Optional[str] = None

    def to_fix(self) -> Fix:
        """Decode the stored fix, raising CorruptRecordError on bad data."""
        try:
            return Fix.from_json(self.payload)
        except (ValueError, KeyError, TypeError) as exc:
            raise CorruptRecordError(self.id, str(exc)) from exc
