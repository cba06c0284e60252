"""Offline reconstruction of a single GPX track from the durable log."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Union

from ..core.logging_utils import get_module_logger
from .durable_log import DurableLog
from .exporter import SegmentExporter
from .models import LogRecord, Segment

logger = get_module_logger("Rebuilder")


def collect_segment(records: Iterable[LogRecord]) -> Segment:
    """Decode every record, in order, into one segment.

    No deduplication or re-segmentation happens here; what was logged is
    what is exported.

    Raises:
        CorruptRecordError: on the first record that does not decode.
    """
    segment = Segment()
    for record in records:
        segment.append(record.to_fix())
    return segment


def rebuild(
    db_path: Union[str, Path],
    output_dir: Union[str, Path],
    exporter: Optional[SegmentExporter] = None,
) -> Optional[Path]:
    """Export the whole durable log as one GPX file.

    Returns the written path, or None when the log holds no records.

    Raises:
        DurableLogError: if the log does not exist or cannot be read.
        CorruptRecordError: if a record cannot be decoded; nothing is written.
        ExportError: if the GPX file cannot be written.
    """
    exporter = exporter or SegmentExporter(output_dir, "per_flush")

    with DurableLog(db_path, create=False) as log:
        logger.info("Scanning %d records from %s", log.count(), db_path)
        segment = collect_segment(log.scan())

    if not segment:
        logger.info("Durable log is empty, nothing to export")
        return None

    path = exporter.export(segment.seal())
    logger.info("Rebuilt track with %d points at %s", len(segment), path)
    return path
