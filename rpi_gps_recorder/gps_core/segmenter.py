"""Fix deduplication and track segmentation.

Two strategies decide what happens to each candidate fix:

``ContinuousSessionPolicy``
    Drops a fix that is both close to the last retained fix and recent
    relative to it. The segment grows for the whole session.

``BatchPolicy``
    Keeps every fix but seals the open segment once it is full or too old,
    so completed segments can be exported while recording continues.

``TrackSegmenter`` applies a policy, writes accepted fixes to the durable
log and maintains the open segment behind a lock shared with the shutdown
path.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Optional, Protocol

from geopy.distance import geodesic

from ..core.logging_utils import get_module_logger
from .constants import (
    DEFAULT_MAX_SEGMENT_DURATION_S,
    DEFAULT_MAX_SEGMENT_POINTS,
    DEFAULT_MIN_DISTANCE_M,
    DEFAULT_MIN_INTERVAL_S,
)
from .errors import DurableLogError
from .models import Fix, Segment

logger = get_module_logger("TrackSegmenter")

SEGMENT_POLICIES = ("continuous", "batch")


class Decision(Enum):
    """Outcome of evaluating one candidate fix."""
    REJECT = "reject"
    ACCEPT = "accept"
    SEAL_THEN_ACCEPT = "seal_then_accept"


def distance_m(a: Fix, b: Fix) -> float:
    """Geodesic (WGS-84) distance between two fixes in meters."""
    return geodesic((a.latitude, a.longitude), (b.latitude, b.longitude)).meters


def elapsed_s(earlier: Fix, later: Fix) -> float:
    """Seconds from ``earlier`` to ``later``; negative after a clock step back."""
    return (later.timestamp - earlier.timestamp).total_seconds()


class SegmentPolicy(Protocol):
    name: str

    def evaluate(self, candidate: Fix, segment: Segment, last_retained: Optional[Fix]) -> Decision:
        ...


class ContinuousSessionPolicy:
    """Reject a fix only when it is within ``min_distance_m`` AND within
    ``min_interval_s`` of the last retained fix. Never seals."""

    name = "continuous"

    def __init__(
        self,
        min_distance_m: float = DEFAULT_MIN_DISTANCE_M,
        min_interval_s: float = DEFAULT_MIN_INTERVAL_S,
    ):
        self.min_distance_m = min_distance_m
        self.min_interval_s = min_interval_s

    def evaluate(self, candidate: Fix, segment: Segment, last_retained: Optional[Fix]) -> Decision:
        if last_retained is None:
            return Decision.ACCEPT
        elapsed = elapsed_s(last_retained, candidate)
        # A backwards clock step counts as the interval having passed
        if (
            0 <= elapsed < self.min_interval_s
            and distance_m(last_retained, candidate) < self.min_distance_m
        ):
            return Decision.REJECT
        return Decision.ACCEPT


class BatchPolicy:
    """Accept every fix; seal before inserting when the open segment already
    holds ``max_points`` fixes, or the candidate is more than
    ``max_duration_s`` after the segment's first fix or before it."""

    name = "batch"

    def __init__(
        self,
        max_points: int = DEFAULT_MAX_SEGMENT_POINTS,
        max_duration_s: float = DEFAULT_MAX_SEGMENT_DURATION_S,
    ):
        if max_points < 1:
            raise ValueError("max_points must be at least 1")
        self.max_points = max_points
        self.max_duration_s = max_duration_s

    def evaluate(self, candidate: Fix, segment: Segment, last_retained: Optional[Fix]) -> Decision:
        first = segment.first
        if first is None:
            return Decision.ACCEPT
        elapsed = elapsed_s(first, candidate)
        if len(segment) >= self.max_points or elapsed < 0 or elapsed > self.max_duration_s:
            return Decision.SEAL_THEN_ACCEPT
        return Decision.ACCEPT


def build_policy(
    name: str,
    *,
    min_distance_m: float = DEFAULT_MIN_DISTANCE_M,
    min_interval_s: float = DEFAULT_MIN_INTERVAL_S,
    max_points: int = DEFAULT_MAX_SEGMENT_POINTS,
    max_duration_s: float = DEFAULT_MAX_SEGMENT_DURATION_S,
) -> SegmentPolicy:
    """Create the policy named by the ``segment_policy`` setting."""
    if name == "continuous":
        return ContinuousSessionPolicy(min_distance_m, min_interval_s)
    if name == "batch":
        return BatchPolicy(max_points, max_duration_s)
    raise ValueError(f"Unknown segment policy {name!r}; expected one of {SEGMENT_POLICIES}")


class FixSink(Protocol):
    def append(self, payload: str) -> int:
        ...


class SegmentBuffer:
    """The open segment, guarded by an exclusive lock.

    The ingestion loop holds the lock while deciding and inserting; the
    shutdown coordinator holds it while draining. Neither side ever sees a
    half-updated point list.
    """

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self._segment = Segment()

    @property
    def segment(self) -> Segment:
        return self._segment

    def take(self) -> Segment:
        """Hand over the open segment sealed and start an empty one.

        Callers must hold ``lock``.
        """
        taken = self._segment.seal()
        self._segment = Segment()
        return taken


class TrackSegmenter:
    """Applies a policy to each fix and records the ones it keeps."""

    def __init__(
        self,
        policy: SegmentPolicy,
        buffer: SegmentBuffer,
        durable_log: Optional[FixSink] = None,
    ):
        self.policy = policy
        self.buffer = buffer
        self.durable_log = durable_log
        self.last_retained: Optional[Fix] = None
        self.accepted = 0
        self.rejected = 0
        self.log_failures = 0

    def offer(self, fix: Fix) -> tuple[bool, Optional[Segment]]:
        """Evaluate ``fix`` and retain it if the policy allows.

        Returns ``(retained, sealed)``: whether the fix was kept, and the
        segment sealed to make room for it, if any. The sealed segment
        belongs to the caller, who is expected to export it.
        """
        with self.buffer.lock:
            decision = self.policy.evaluate(fix, self.buffer.segment, self.last_retained)

            if decision is Decision.REJECT:
                self.rejected += 1
                logger.debug("No significant movement, skipping fix at %s", fix.timestamp.isoformat())
                return False, None

            sealed = None
            if decision is Decision.SEAL_THEN_ACCEPT:
                sealed = self.buffer.take()
                logger.info("Sealed segment with %d points", len(sealed))

            self._persist(fix)
            self.buffer.segment.append(fix)
            self.last_retained = fix
            self.accepted += 1
            return True, sealed

    def _persist(self, fix: Fix) -> None:
        if self.durable_log is None:
            return
        try:
            self.durable_log.append(fix.to_json())
        except DurableLogError as exc:
            self.log_failures += 1
            logger.error("Error when saving to database: %s", exc)
