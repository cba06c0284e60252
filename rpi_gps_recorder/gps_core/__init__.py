"""GPS fix ingestion, segmentation, durable logging and GPX export."""

from .durable_log import DurableLog
from .errors import (
    CorruptRecordError,
    DurableLogError,
    ExportError,
    RecorderError,
    RecorderSetupError,
)
from .exporter import SegmentExporter
from .models import Fix, FixQuality, LogRecord, Segment
from .normalizer import AuxiliaryState, FixNormalizer
from .rebuilder import rebuild
from .recorder import TrackRecorder
from .segmenter import (
    BatchPolicy,
    ContinuousSessionPolicy,
    Decision,
    SegmentBuffer,
    TrackSegmenter,
    build_policy,
)
from .shutdown_coordinator import ShutdownCoordinator, ShutdownState

__all__ = [
    "AuxiliaryState",
    "BatchPolicy",
    "ContinuousSessionPolicy",
    "CorruptRecordError",
    "Decision",
    "DurableLog",
    "DurableLogError",
    "ExportError",
    "Fix",
    "FixNormalizer",
    "FixQuality",
    "LogRecord",
    "RecorderError",
    "RecorderSetupError",
    "Segment",
    "SegmentBuffer",
    "SegmentExporter",
    "ShutdownCoordinator",
    "ShutdownState",
    "TrackRecorder",
    "TrackSegmenter",
    "build_policy",
    "rebuild",
]
