"""Unit tests for component loggers and root logging setup."""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from rpi_gps_recorder.core.logging_config import coerce_level, configure_logging
from rpi_gps_recorder.core.logging_utils import StructuredLogger, get_module_logger


class TestGetModuleLogger:
    """Test logger naming and message prefixes."""

    def test_namespaced_name(self):
        logger = get_module_logger("DurableLog")
        assert isinstance(logger, StructuredLogger)
        assert logger.name == "rpi_gps_recorder.DurableLog"
        assert logger.component == "DurableLog"

    def test_dotted_module_path_uses_last_segment(self):
        logger = get_module_logger("rpi_gps_recorder.gps_core.exporter")
        assert logger.component == "exporter"

    def test_root_logger_component(self):
        assert get_module_logger().component == "Recorder"

    def test_message_prefixed_with_component(self, caplog):
        logger = get_module_logger("SegmentExporter")
        with caplog.at_level(logging.INFO, logger="rpi_gps_recorder"):
            logger.info("Exported %d points", 3)
        assert caplog.records[-1].getMessage() == "[SegmentExporter] Exported 3 points"

    def test_disabled_level_not_emitted(self, caplog):
        logger = get_module_logger("Quiet")
        with caplog.at_level(logging.WARNING, logger="rpi_gps_recorder"):
            logger.debug("hidden")
        assert not caplog.records

    def test_child_component(self):
        child = get_module_logger("TrackRecorder").getChild("reader")
        assert child.component == "TrackRecorder.reader"
        assert child.name == "rpi_gps_recorder.TrackRecorder.reader"


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)


class TestConfigureLogging:
    """Test level coercion and handler setup."""

    def test_coerce_level_names(self):
        assert coerce_level("debug") == logging.DEBUG
        assert coerce_level("WARNING") == logging.WARNING
        assert coerce_level(logging.ERROR) == logging.ERROR

    def test_coerce_level_unknown(self):
        with pytest.raises(ValueError):
            coerce_level("chatty")

    def test_file_handler_written(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "recorder.log"
        configure_logging("info", console=False, log_file=log_file)
        get_module_logger("Test").info("hello")
        for handler in restore_root_logger.handlers:
            handler.flush()
        assert "[Test] hello" in log_file.read_text()

    def test_rotation_settings_applied(self, tmp_path, restore_root_logger):
        configure_logging(
            "debug",
            console=False,
            log_file=tmp_path / "recorder.log",
            max_bytes=2048,
            backup_count=5,
        )
        (handler,) = restore_root_logger.handlers
        assert isinstance(handler, RotatingFileHandler)
        assert handler.maxBytes == 2048
        assert handler.backupCount == 5
        assert restore_root_logger.level == logging.DEBUG

    def test_file_rotates_at_size_cap(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "recorder.log"
        configure_logging("info", console=False, log_file=log_file, max_bytes=200, backup_count=2)
        logger = get_module_logger("Rotation")
        for i in range(50):
            logger.info("line %d", i)
        assert (tmp_path / "recorder.log.1").exists()
        assert not (tmp_path / "recorder.log.3").exists()

    def test_reconfigure_replaces_handlers(self, restore_root_logger):
        configure_logging("info", console=True)
        configure_logging("info", console=True)
        assert len(restore_root_logger.handlers) == 1

    def test_silent_without_outputs(self, restore_root_logger):
        configure_logging("info", console=False, log_file=None)
        (handler,) = restore_root_logger.handlers
        assert isinstance(handler, logging.NullHandler)
