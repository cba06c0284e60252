"""Loader for ``key = value`` style configuration files."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from .logging_utils import get_module_logger

logger = get_module_logger("ConfigLoader")

_TRUE_WORDS = ("true", "yes", "on", "1")
_BOOL_WORDS = _TRUE_WORDS + ("false", "no", "off", "0")


class ConfigLoader:
    """Parses ``config.txt`` files into typed dictionaries.

    Blank lines and ``#`` comments are ignored, including trailing comments
    after a value. When ``defaults`` are given, each known key is coerced to
    the type of its default; an unparseable value keeps the default.
    """

    @staticmethod
    def load(
        config_path: Path,
        defaults: Optional[Dict[str, Any]] = None,
        strict: bool = False,
    ) -> Dict[str, Any]:
        config = dict(defaults) if defaults else {}

        if not config_path.exists():
            logger.debug("Config file not found at %s, using defaults", config_path)
            return config

        logger.debug("Loading config from: %s", config_path)

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                lines = f.readlines()
        except OSError as exc:
            logger.error("Failed to read config file %s: %s", config_path, exc)
            return config

        for line_num, line in enumerate(lines, 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            if "=" not in line:
                logger.warning("Invalid config line %d (missing '='): %s", line_num, line)
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.split("#", 1)[0].strip()

            if strict and defaults is not None and key not in defaults:
                logger.warning(
                    "Unknown config key '%s' (line %d) - ignored in strict mode",
                    key, line_num,
                )
                continue

            if defaults and key in defaults and defaults[key] is not None:
                config[key] = ConfigLoader._parse_value_with_type(value, defaults[key])
            else:
                config[key] = ConfigLoader._parse_value(value)

        logger.info("Loaded config from %s (%d values)", config_path, len(config))
        return config

    @staticmethod
    def _parse_value(value: str) -> Any:
        if not value:
            return None

        value_lower = value.lower()
        if value_lower in _BOOL_WORDS and not value_lower.isdigit():
            return value_lower in _TRUE_WORDS

        for cast in (int, float):
            try:
                return cast(value)
            except ValueError:
                pass

        return value

    @staticmethod
    def _parse_value_with_type(value: str, default: Any) -> Any:
        target_type = type(default)

        if target_type is bool:
            value_lower = value.lower()
            if value_lower not in _BOOL_WORDS:
                logger.warning("Failed to parse '%s' as bool, using default", value)
                return default
            return value_lower in _TRUE_WORDS

        if target_type in (int, float):
            try:
                return int(value, 0) if target_type is int else float(value)
            except ValueError:
                logger.warning("Failed to parse '%s' as %s, using default", value, target_type.__name__)
                return default

        if isinstance(default, Path):
            return Path(value)

        return value
