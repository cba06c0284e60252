"""TrackRecorder - the live ingestion loop.

Reads NMEA lines from the receiver, folds auxiliary readings into the
normalizer, passes each fix through the segmenter and exports segments as
they are sealed. Shutdown is cooperative: the loop checks the coordinator's
stop event once per iteration.
"""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING, Optional

from ..core.logging_utils import get_module_logger
from .durable_log import DurableLog
from .errors import DurableLogError, ExportError, RecorderSetupError
from .exporter import SegmentExporter
from .models import Segment
from .normalizer import FixNormalizer
from .parsers.nmea_parser import NMEAParser
from .parsers.nmea_types import (
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
from .receiver import configure_receiver
from .segmenter import SegmentBuffer, TrackSegmenter, build_policy
from .shutdown_coordinator import ShutdownCoordinator
from .transports.base_transport import BaseGPSTransport
from .transports.serial_transport import SerialGPSTransport

if TYPE_CHECKING:
    from ..config import RecorderConfig

logger = get_module_logger("TrackRecorder")

READ_TIMEOUT_S = 1.0
STOP_POLL_INTERVAL_S = 0.1


class TrackRecorder:
    """Owns the pipeline from serial line to GPX file for one session.

    Components are built from ``config``; any of them may be passed in
    instead, which is how tests drive the loop without hardware.
    """

    def __init__(
        self,
        config: RecorderConfig,
        *,
        transport: Optional[BaseGPSTransport] = None,
        durable_log: Optional[DurableLog] = None,
        normalizer: Optional[FixNormalizer] = None,
        exporter: Optional[SegmentExporter] = None,
        stop_event: Optional[threading.Event] = None,
        read_timeout_s: float = READ_TIMEOUT_S,
    ):
        self.config = config
        self.read_timeout_s = read_timeout_s

        self.transport = transport or SerialGPSTransport(config.serial_port, config.baud_rate)
        self.durable_log = durable_log or DurableLog(config.db_path, foreign_keys=config.foreign_keys)
        self.parser = NMEAParser()
        self.normalizer = normalizer or FixNormalizer(
            staleness_s=config.staleness_s,
            source_tag=config.source_tag,
            fix_quality_source=config.fix_quality_source,
        )
        self.buffer = SegmentBuffer()
        self.segmenter = TrackSegmenter(
            build_policy(
                config.segment_policy,
                min_distance_m=config.min_distance_m,
                min_interval_s=config.min_interval_s,
                max_points=config.max_segment_points,
                max_duration_s=config.max_segment_duration_s,
            ),
            self.buffer,
            self.durable_log,
        )
        self.exporter = exporter or SegmentExporter(config.output_dir, config.export_mode)
        self.coordinator = ShutdownCoordinator(self.buffer, self.exporter, stop_event)

    @property
    def stop_event(self) -> threading.Event:
        return self.coordinator.stop_event

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open the durable log and the serial port.

        Raises:
            RecorderSetupError: if either cannot be opened. There is no retry.
        """
        try:
            self.durable_log.open()
        except DurableLogError as exc:
            raise RecorderSetupError(f"Error connecting to database: {exc}") from exc

        if self.config.configure_receiver and isinstance(self.transport, SerialGPSTransport):
            connected = await configure_receiver(
                self.transport,
                initial_baud_rate=self.config.initial_baud_rate,
                baud_rate=self.config.baud_rate,
                update_rate_ms=self.config.update_rate_ms,
            )
        else:
            connected = await self.transport.connect()

        if not connected:
            self.durable_log.close()
            reason = self.transport.last_error or "unknown error"
            raise RecorderSetupError(f"Could not open GPS port {self.config.serial_port}: {reason}")

        logger.info(
            "Recording with %s policy, exports to %s (%s)",
            self.config.segment_policy, self.config.output_dir, self.config.export_mode,
        )

    async def close(self) -> None:
        await self.transport.disconnect()
        self.durable_log.close()

    async def run(self) -> int:
        """Ingest until the stop event is set; returns the exit status."""
        loop = asyncio.get_running_loop()
        self.coordinator.install_signal_handlers(loop)
        try:
            while not self.stop_event.is_set():
                sentence = await self.next_sentence()
                if sentence is not None:
                    await self.handle_sentence(sentence)
        finally:
            self.coordinator.remove_signal_handlers(loop)
            await self.coordinator.wait_drained()
            await self.close()

        logger.info(
            "Stopped: %d fixes retained, %d skipped, %d log failures",
            self.segmenter.accepted, self.segmenter.rejected, self.segmenter.log_failures,
        )
        return 0

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def next_sentence(self) -> Optional[RawSentence]:
        """Read and decode one line. None means the read timed out."""
        if not self.transport.is_connected:
            return NoConnection(reason=self.transport.last_error or "port closed")

        line = await self.transport.read_raw_line(timeout=self.read_timeout_s)
        if line is None:
            if not self.transport.is_connected:
                return NoConnection(reason=self.transport.last_error or "connection lost")
            return None
        if not line.strip():
            return None
        return self.parser.parse_bytes(line)

    async def handle_sentence(self, sentence: RawSentence) -> None:
        if isinstance(sentence, PositionFix):
            self._on_position(sentence)
        elif isinstance(sentence, SatelliteGeometry):
            self.normalizer.observe_geometry(sentence)
            logger.info("PDOP: %s, VDOP: %s, HDOP: %s", sentence.pdop, sentence.vdop, sentence.hdop)
        elif isinstance(sentence, GroundSpeed):
            self.normalizer.observe_speed(sentence)
            logger.info("Speed: %s km/h, %s knots", sentence.speed_kmh, sentence.speed_knots)
        elif isinstance(sentence, SatelliteView):
            logger.debug("Satellites in view: %s, SNR: %s", sentence.satellites_in_view, list(sentence.snr))
        elif isinstance(sentence, OtherSentence):
            logger.debug("Ignoring %s sentence", sentence.sentence_type)
        elif isinstance(sentence, InvalidSentence):
            logger.warning("Invalid sentence, wrong baud rate? (%s)", sentence.reason)
        elif isinstance(sentence, InvalidBytes):
            logger.warning("Invalid bytes given, try again (%d bytes)", len(sentence.data))
        elif isinstance(sentence, NoConnection):
            logger.warning("No connection with gps: %s", sentence.reason)
            await self._reconnect()
        else:
            raise TypeError(f"Unhandled sentence type {type(sentence).__name__}")

    def _on_position(self, sentence: PositionFix) -> None:
        logger.debug(
            "UTC: %s, Fix: %s, Lat: %s, Long: %s, Sats: %d, MSL Alt: %s",
            sentence.utc_time, sentence.has_fix(), sentence.latitude,
            sentence.longitude, sentence.satellites_used, sentence.altitude_m,
        )
        fix = self.normalizer.normalize(sentence)
        if fix is None:
            return
        _, sealed = self.segmenter.offer(fix)
        if sealed is not None:
            self._export(sealed)

    def _export(self, segment: Segment) -> None:
        try:
            self.exporter.export(segment)
        except ExportError as exc:
            logger.error("Failed to export segment of %d points: %s", len(segment), exc)

    async def _reconnect(self) -> None:
        """Wait ``reconnect_delay_s`` (cut short by a stop), then reopen the port."""
        waited = 0.0
        while waited < self.config.reconnect_delay_s and not self.stop_event.is_set():
            step = min(STOP_POLL_INTERVAL_S, self.config.reconnect_delay_s - waited)
            await asyncio.sleep(step)
            waited += step
        if self.stop_event.is_set():
            return
        if await self.transport.connect():
            logger.info("Reconnected to GPS")
