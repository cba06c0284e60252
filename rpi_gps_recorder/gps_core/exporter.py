"""SegmentExporter - writes sealed segments to GPX 1.1 track files."""

from __future__ import annotations

import datetime as dt
import os
import tempfile
import threading
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Callable, Optional, Union

import gpxpy
import gpxpy.gpx

from ..core.logging_utils import get_module_logger
from .constants import DEFAULT_OUTPUT_DIR, EXPORT_FILENAME_PREFIX, EXPORT_TIME_FORMAT
from .errors import ExportError
from .models import Fix, Segment

logger = get_module_logger("SegmentExporter")

EXPORT_MODES = ("per_flush", "accumulate")

TRACKPOINT_EXT_NS = "http://www.garmin.com/xmlschemas/TrackPointExtension/v2"
GPX_CREATOR = "rpi-gps-recorder"

ET.register_namespace("gpxtpx", TRACKPOINT_EXT_NS)


def _local_now() -> dt.datetime:
    return dt.datetime.now()


def new_gpx() -> gpxpy.gpx.GPX:
    """An empty GPX document with one track and the speed extension namespace."""
    gpx = gpxpy.gpx.GPX()
    gpx.creator = GPX_CREATOR
    gpx.nsmap["gpxtpx"] = TRACKPOINT_EXT_NS
    gpx.tracks.append(gpxpy.gpx.GPXTrack())
    return gpx


def to_track_point(fix: Fix) -> gpxpy.gpx.GPXTrackPoint:
    point = gpxpy.gpx.GPXTrackPoint(
        latitude=fix.latitude,
        longitude=fix.longitude,
        elevation=fix.elevation,
        time=fix.timestamp,
        horizontal_dilution=fix.hdop,
        vertical_dilution=fix.vdop,
        position_dilution=fix.pdop,
    )
    point.type_of_gpx_fix = fix.fix_quality.value
    point.satellites = fix.satellites
    point.source = fix.source

    # GPX 1.1 has no speed element
    if fix.speed_mps is not None:
        extension = ET.Element(f"{{{TRACKPOINT_EXT_NS}}}TrackPointExtension")
        speed = ET.SubElement(extension, f"{{{TRACKPOINT_EXT_NS}}}speed")
        speed.text = f"{fix.speed_mps:.3f}"
        point.extensions.append(extension)
    return point


def to_track_segment(segment: Segment) -> gpxpy.gpx.GPXTrackSegment:
    track_segment = gpxpy.gpx.GPXTrackSegment()
    track_segment.points.extend(to_track_point(fix) for fix in segment)
    return track_segment


class SegmentExporter:
    """Materializes segments into GPX files under ``output_dir``.

    ``per_flush`` writes each segment to its own file. ``accumulate`` keeps
    one file for the exporter's lifetime and rewrites it with every segment
    exported so far, one ``<trkseg>`` each.
    """

    def __init__(
        self,
        output_dir: Union[str, Path] = DEFAULT_OUTPUT_DIR,
        export_mode: str = "per_flush",
        clock: Callable[[], dt.datetime] = _local_now,
    ):
        if export_mode not in EXPORT_MODES:
            raise ValueError(f"export_mode must be one of {EXPORT_MODES}, got {export_mode!r}")
        self.output_dir = Path(output_dir)
        self.export_mode = export_mode
        self._clock = clock
        self._lock = threading.Lock()
        self._accumulated: Optional[gpxpy.gpx.GPX] = None
        self._accumulated_path: Optional[Path] = None
        self.exports = 0

    def export(self, segment: Segment) -> Optional[Path]:
        """Write ``segment`` and return the file path, or None when empty.

        Safe to call from the ingestion loop and the shutdown drain at once;
        exports are serialized so two of them never pick the same file.

        Raises:
            ExportError: if the file cannot be named or written.
        """
        if not segment:
            logger.debug("Skipping export of empty segment")
            return None

        with self._lock:
            if self.export_mode == "accumulate":
                path = self._export_accumulated(segment)
            else:
                gpx = new_gpx()
                gpx.tracks[0].segments.append(to_track_segment(segment))
                path = self._write(gpx, self._next_path())
            self.exports += 1


        logger.info("Exported %d points to %s", len(segment), path)
        return path

    def _export_accumulated(self, segment: Segment) -> Path:
        gpx = self._accumulated if self._accumulated is not None else new_gpx()
        gpx.tracks[0].segments.append(to_track_segment(segment))
        path = self._accumulated_path or self._next_path()
        try:
            self._write(gpx, path)
        except ExportError:
            # Drop the segment so a later rewrite does not resurrect it
            gpx.tracks[0].segments.pop()
            raise
        self._accumulated = gpx
        self._accumulated_path = path
        return path

    def _next_path(self) -> Path:
        """First free ``record-<local time>[-N].gpx`` name in ``output_dir``."""
        stamp = self._clock().strftime(EXPORT_TIME_FORMAT)
        base = f"{EXPORT_FILENAME_PREFIX}-{stamp}"
        candidate = self.output_dir / f"{base}.gpx"
        suffix = 1
        try:
            while candidate.exists():
                candidate = self.output_dir / f"{base}-{suffix}.gpx"
                suffix += 1
        except OSError as exc:
            raise ExportError(f"Failed to choose a file name in {self.output_dir}: {exc}") from exc
        return candidate

    def _write(self, gpx: gpxpy.gpx.GPX, path: Path) -> Path:
        xml = gpx.to_xml(version="1.1")
        tmp_path: Optional[Path] = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                dir=str(path.parent),
                prefix=f".{path.stem}.",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            ) as tmp:
                tmp_path = Path(tmp.name)
                tmp.write(xml)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, path)
            tmp_path = None
        except OSError as exc:
            raise ExportError(f"Failed to write {path}: {exc}") from exc
        finally:
            if tmp_path is not None:
                try:
                    tmp_path.unlink()
                except FileNotFoundError:
                    pass
        return path
