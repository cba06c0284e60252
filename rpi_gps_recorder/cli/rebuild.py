"""``rpi-gps-rebuild``: write one GPX track from the whole durable log."""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from ..config import RecorderConfig
from ..core.logging_config import configure_logging
from ..core.logging_utils import get_module_logger
from ..gps_core.errors import CorruptRecordError, DurableLogError, ExportError
from ..gps_core.rebuilder import rebuild
from .common import add_common_cli_arguments, install_exception_handlers

logger = get_module_logger("RebuildCLI")

EXIT_OK = 0
EXIT_LOG_UNAVAILABLE = 1
EXIT_CORRUPT_RECORD = 2
EXIT_EXPORT_FAILED = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rpi-gps-rebuild",
        description="Rebuild a single GPX track from the recorder's durable log",
    )
    add_common_cli_arguments(parser)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = RecorderConfig.load(args.config, args)

    configure_logging(
        config.log_level,
        console=config.console_output,
        log_file=config.log_file,
        max_bytes=config.log_max_bytes,
        backup_count=config.log_backup_count,
    )
    install_exception_handlers(logger)

    try:
        path = rebuild(config.db_path, config.output_dir)
    except CorruptRecordError as exc:
        logger.error("Aborting rebuild at record %d: %s", exc.record_id, exc.reason)
        return EXIT_CORRUPT_RECORD
    except DurableLogError as exc:
        logger.error("Cannot read durable log: %s", exc)
        return EXIT_LOG_UNAVAILABLE
    except ExportError as exc:
        logger.error("Cannot write track file: %s", exc)
        return EXIT_EXPORT_FAILED

    if path is None:
        logger.info("No records in %s, no file written", config.db_path)
    return EXIT_OK


def run(argv: Optional[Sequence[str]] = None) -> None:
    sys.exit(main(argv))


if __name__ == "__main__":
    run()
