"""Unit tests for the live ingestion loop, driven by a mock transport."""

import asyncio
import datetime as dt
import logging
from typing import Callable, Optional

import gpxpy
import pytest

from rpi_gps_recorder.config import RecorderConfig
from rpi_gps_recorder.gps_core.durable_log import DurableLog
from rpi_gps_recorder.gps_core.errors import RecorderSetupError
from rpi_gps_recorder.gps_core.normalizer import FixNormalizer
from rpi_gps_recorder.gps_core.parsers.nmea_types import (
    GroundSpeed,
    InvalidBytes,
    InvalidSentence,
    NoConnection,
)
from rpi_gps_recorder.gps_core.recorder import TrackRecorder
from rpi_gps_recorder.gps_core.transports import BaseGPSTransport

GGA_BODY = "GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,"


class MockTransport(BaseGPSTransport):
    """Mock transport that yields predefined lines."""

    def __init__(self, lines: list[bytes], connect_ok: bool = True):
        super().__init__()
        self._lines = list(lines)
        self.connect_ok = connect_ok
        self.connect_calls = 0
        self.on_exhausted: Optional[Callable[[], None]] = None

    async def connect(self) -> bool:
        self.connect_calls += 1
        self._connected = self.connect_ok
        return self.connect_ok

    async def disconnect(self) -> None:
        self._connected = False

    async def read_raw_line(self, timeout: float = 1.0) -> Optional[bytes]:
        await asyncio.sleep(0)
        if self._lines:
            return self._lines.pop(0)
        if self.on_exhausted is not None:
            self.on_exhausted()
        return None

    async def write_line(self, line: str) -> bool:
        return True


def clock_from(times):
    iterator = iter(times)
    return lambda: next(iterator)


@pytest.fixture
def config(tmp_path):
    return RecorderConfig(
        db_path=tmp_path / "data" / "data.db",
        output_dir=tmp_path / "tracks",
        configure_receiver=False,
        reconnect_delay_s=0.01,
    )


def exported_files(config):
    return sorted(config.output_dir.glob("record-*.gpx"))


def stop_when_exhausted(recorder: TrackRecorder) -> None:
    recorder.transport.on_exhausted = lambda: recorder.coordinator.request_shutdown("test")


class TestTrackRecorderSession:
    """End-to-end sessions through run()."""

    @pytest.mark.asyncio
    async def test_continuous_session(self, config, nmea, t0):
        lines = [nmea(GGA_BODY).encode("ascii")] * 4
        offsets = (0, 1, 2, 6)
        normalizer = FixNormalizer(clock=clock_from([t0 + dt.timedelta(seconds=s) for s in offsets]))
        recorder = TrackRecorder(config, transport=MockTransport(lines), normalizer=normalizer)
        stop_when_exhausted(recorder)

        await recorder.start()
        status = await recorder.run()

        assert status == 0
        assert not recorder.durable_log.is_open
        assert not recorder.transport.is_connected

        with DurableLog(config.db_path, create=False) as log:
            times = [record.to_fix().timestamp for record in log.scan()]
        assert times == [t0, t0 + dt.timedelta(seconds=6)]

        files = exported_files(config)
        assert len(files) == 1
        with open(files[0], encoding="utf-8") as f:
            points = gpxpy.parse(f).tracks[0].segments[0].points
        assert len(points) == 2

    @pytest.mark.asyncio
    async def test_batch_session_exports_sealed_segments(self, config, nmea, t0):
        config.segment_policy = "batch"
        config.max_segment_points = 2
        config.max_segment_duration_s = 100.0
        lines = [nmea(GGA_BODY).encode("ascii")] * 5
        normalizer = FixNormalizer(clock=clock_from([t0 + dt.timedelta(seconds=s) for s in range(5)]))
        recorder = TrackRecorder(config, transport=MockTransport(lines), normalizer=normalizer)
        stop_when_exhausted(recorder)

        await recorder.start()
        await recorder.run()

        # Two sealed 2-point segments plus the 1-point remainder at shutdown
        assert len(exported_files(config)) == 3
        assert recorder.segmenter.accepted == 5

    @pytest.mark.asyncio
    async def test_export_failure_does_not_end_session(self, config, nmea, t0):
        config.segment_policy = "batch"
        config.max_segment_points = 2
        config.max_segment_duration_s = 100.0
        config.output_dir = config.output_dir / ("a" * 300)
        lines = [nmea(GGA_BODY).encode("ascii")] * 5
        normalizer = FixNormalizer(clock=clock_from([t0 + dt.timedelta(seconds=s) for s in range(5)]))
        recorder = TrackRecorder(config, transport=MockTransport(lines), normalizer=normalizer)
        stop_when_exhausted(recorder)

        await recorder.start()
        status = await recorder.run()

        assert status == 0
        assert recorder.segmenter.accepted == 5
        assert recorder.exporter.exports == 0
        assert recorder.stop_event.is_set()
        with DurableLog(config.db_path, create=False) as log:
            assert log.count() == 5

    @pytest.mark.asyncio
    async def test_stop_already_requested(self, config, nmea):
        recorder = TrackRecorder(config, transport=MockTransport([nmea(GGA_BODY).encode("ascii")]))
        await recorder.start()
        recorder.coordinator.request_shutdown("test")

        assert await recorder.run() == 0
        assert recorder.segmenter.accepted == 0

    @pytest.mark.asyncio
    async def test_noise_does_not_stop_loop(self, config, nmea):
        lines = [b"\xff\xfe garbage", b"$GPGGA,broken*00", b"", nmea(GGA_BODY).encode("ascii")]
        recorder = TrackRecorder(config, transport=MockTransport(lines))
        stop_when_exhausted(recorder)

        await recorder.start()
        await recorder.run()

        assert recorder.segmenter.accepted == 1


class TestTrackRecorderStartup:
    """Fatal setup errors."""

    @pytest.mark.asyncio
    async def test_port_unavailable(self, config):
        transport = MockTransport([], connect_ok=False)
        recorder = TrackRecorder(config, transport=transport)

        with pytest.raises(RecorderSetupError):
            await recorder.start()
        assert transport.connect_calls == 1
        assert not recorder.durable_log.is_open

    @pytest.mark.asyncio
    async def test_database_unavailable(self, config, tmp_path):
        config.db_path = tmp_path
        transport = MockTransport([])
        recorder = TrackRecorder(config, transport=transport)

        with pytest.raises(RecorderSetupError):
            await recorder.start()
        assert transport.connect_calls == 0


class TestHandleSentence:
    """Per-sentence dispatch."""

    @pytest.mark.asyncio
    async def test_speed_reading_feeds_normalizer(self, config):
        recorder = TrackRecorder(config, transport=MockTransport([]))
        await recorder.handle_sentence(GroundSpeed(speed_kmh=36.0))
        assert recorder.normalizer.state.speed_kmh == pytest.approx(36.0)

    @pytest.mark.asyncio
    async def test_errors_logged_as_warnings(self, config, caplog):
        recorder = TrackRecorder(config, transport=MockTransport([]))
        with caplog.at_level(logging.WARNING, logger="rpi_gps_recorder"):
            await recorder.handle_sentence(InvalidSentence(raw="x", reason="checksum mismatch"))
            await recorder.handle_sentence(InvalidBytes(data=b"\xff"))
        messages = [record.getMessage() for record in caplog.records]
        assert any("Invalid sentence" in m for m in messages)
        assert any("Invalid bytes" in m for m in messages)
        assert all(record.levelno == logging.WARNING for record in caplog.records)

    @pytest.mark.asyncio
    async def test_no_connection_reconnects(self, config):
        transport = MockTransport([])
        recorder = TrackRecorder(config, transport=transport)

        sentence = await recorder.next_sentence()
        assert isinstance(sentence, NoConnection)

        await recorder.handle_sentence(sentence)
        assert transport.connect_calls == 1
        assert transport.is_connected

    @pytest.mark.asyncio
    async def test_no_reconnect_after_stop(self, config):
        transport = MockTransport([])
        recorder = TrackRecorder(config, transport=transport)
        recorder.stop_event.set()

        await recorder.handle_sentence(NoConnection(reason="closed"))
        assert transport.connect_calls == 0

    @pytest.mark.asyncio
    async def test_unknown_type_rejected(self, config):
        recorder = TrackRecorder(config, transport=MockTransport([]))
        with pytest.raises(TypeError):
            await recorder.handle_sentence("$GPGGA")
