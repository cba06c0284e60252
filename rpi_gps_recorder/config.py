"""Typed configuration for the recorder and the rebuilder."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from .core.config_loader import ConfigLoader
from .core.logging_config import DEFAULT_LOG_BACKUP_COUNT, DEFAULT_LOG_MAX_BYTES
from .core.logging_utils import get_module_logger
from .gps_core.constants import (
    DEFAULT_BAUD_RATE,
    DEFAULT_DB_PATH,
    DEFAULT_INITIAL_BAUD_RATE,
    DEFAULT_MAX_SEGMENT_DURATION_S,
    DEFAULT_MAX_SEGMENT_POINTS,
    DEFAULT_MIN_DISTANCE_M,
    DEFAULT_MIN_INTERVAL_S,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_RECONNECT_DELAY,
    DEFAULT_SERIAL_PORT,
    DEFAULT_SOURCE_TAG,
    DEFAULT_STALENESS_S,
    DEFAULT_UPDATE_RATE_MS,
)
from .gps_core.exporter import EXPORT_MODES
from .gps_core.normalizer import FIX_QUALITY_SOURCES
from .gps_core.segmenter import SEGMENT_POLICIES

logger = get_module_logger("RecorderConfig")

DEFAULT_CONFIG_PATH = Path("config.txt")

_CHOICES = {
    "export_mode": EXPORT_MODES,
    "segment_policy": SEGMENT_POLICIES,
    "fix_quality_source": FIX_QUALITY_SOURCES,
    "log_level": ("debug", "info", "warning", "error", "critical"),
}

# Smallest accepted value for each numeric key
_MINIMUMS = {
    "baud_rate": 1,
    "initial_baud_rate": 1,
    "update_rate_ms": 100,
    "reconnect_delay_s": 0.0,
    "min_distance_m": 0.0,
    "min_interval_s": 0.0,
    "max_segment_points": 1,
    "max_segment_duration_s": 0.0,
    "staleness_s": 0.0,
    "log_max_bytes": 0,
    "log_backup_count": 0,
}


@dataclass(slots=True)
class RecorderConfig:
    """Typed configuration for the recorder."""

    # Serial configuration
    serial_port: str = DEFAULT_SERIAL_PORT
    baud_rate: int = DEFAULT_BAUD_RATE
    initial_baud_rate: int = DEFAULT_INITIAL_BAUD_RATE
    configure_receiver: bool = True
    update_rate_ms: int = DEFAULT_UPDATE_RATE_MS
    reconnect_delay_s: float = DEFAULT_RECONNECT_DELAY

    # Storage and export
    db_path: Path = field(default_factory=lambda: Path(DEFAULT_DB_PATH))
    foreign_keys: bool = False
    output_dir: Path = field(default_factory=lambda: Path(DEFAULT_OUTPUT_DIR))
    export_mode: str = "per_flush"

    # Filtering and segmentation
    segment_policy: str = "continuous"
    min_distance_m: float = DEFAULT_MIN_DISTANCE_M
    min_interval_s: float = DEFAULT_MIN_INTERVAL_S
    max_segment_points: int = DEFAULT_MAX_SEGMENT_POINTS
    max_segment_duration_s: float = DEFAULT_MAX_SEGMENT_DURATION_S
    staleness_s: float = DEFAULT_STALENESS_S
    fix_quality_source: str = "satellites"
    source_tag: str = DEFAULT_SOURCE_TAG

    # Logging
    log_level: str = "info"
    log_file: Optional[Path] = None
    console_output: bool = True
    log_max_bytes: int = DEFAULT_LOG_MAX_BYTES
    log_backup_count: int = DEFAULT_LOG_BACKUP_COUNT

    @classmethod
    def load(cls, config_path: Optional[Path] = None, args: Any = None) -> "RecorderConfig":
        """Build config from ``config_path`` with optional CLI overrides.

        Unknown keys are ignored with a warning. Values that do not parse,
        that are not one of the allowed choices, or that fall below their
        minimum keep their default.
        """
        defaults = cls()
        path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
        values = ConfigLoader.load(path, defaults=defaults.to_dict(), strict=True)

        for key, choices in _CHOICES.items():
            value = values.get(key)
            normalized = str(value).lower() if value is not None else None
            if normalized not in choices:
                logger.warning(
                    "Invalid %s '%s', expected one of %s; using '%s'",
                    key, value, ", ".join(choices), getattr(defaults, key),
                )
                values[key] = getattr(defaults, key)
            else:
                values[key] = normalized

        for key, minimum in _MINIMUMS.items():
            if values[key] < minimum:
                logger.warning(
                    "Invalid %s %s, must be at least %s; using %s",
                    key, values[key], minimum, getattr(defaults, key),
                )
                values[key] = getattr(defaults, key)

        if values.get("log_file") is not None:
            values["log_file"] = Path(str(values["log_file"]))
        if values.get("serial_port") is not None:
            values["serial_port"] = str(values["serial_port"])
        if values.get("source_tag") is not None:
            values["source_tag"] = str(values["source_tag"])

        config = cls(**values)
        if args is not None:
            config = config._apply_args_override(args)
        return config

    def _apply_args_override(self, args: Any) -> "RecorderConfig":
        """Apply CLI argument overrides to config values."""
        values = self.to_dict()

        arg_mappings = {
            "port": "serial_port",
            "baud_rate": "baud_rate",
            "db": "db_path",
            "output_dir": "output_dir",
            "policy": "segment_policy",
            "log_level": "log_level",
            "log_file": "log_file",
            "console_output": "console_output",
        }

        for arg_name, config_key in arg_mappings.items():
            if hasattr(args, arg_name):
                val = getattr(args, arg_name)
                if val is not None:
                    values[config_key] = val

        for key in ("db_path", "output_dir"):
            values[key] = Path(values[key])
        if values["log_file"] is not None:
            values["log_file"] = Path(values["log_file"])

        return RecorderConfig(**values)

    def to_dict(self) -> dict[str, Any]:
        """Export config values as dictionary."""
        return asdict(self)


__all__ = ["RecorderConfig", "DEFAULT_CONFIG_PATH"]
