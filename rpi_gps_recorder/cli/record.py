"""``rpi-gps-recorder``: record fixes from the serial receiver until signalled."""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from ..config import RecorderConfig
from ..core.logging_config import configure_logging
from ..core.logging_utils import get_module_logger
from ..gps_core.errors import RecorderSetupError
from ..gps_core.recorder import TrackRecorder
from ..gps_core.segmenter import SEGMENT_POLICIES
from .common import add_common_cli_arguments, install_exception_handlers, log_startup

logger = get_module_logger("RecorderCLI")


def positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Value must be an integer") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("Value must be positive")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rpi-gps-recorder",
        description="Record GPS fixes to a durable log and export GPX tracks",
    )
    add_common_cli_arguments(parser)
    parser.add_argument(
        "--port",
        type=str,
        default=None,
        help="Serial port of the GPS receiver (default: /dev/serial0)",
    )
    parser.add_argument(
        "--baud-rate",
        type=positive_int,
        default=None,
        help="Baud rate to record at",
    )
    parser.add_argument(
        "--policy",
        choices=SEGMENT_POLICIES,
        default=None,
        help="Segmentation policy",
    )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


async def run_recorder(config: RecorderConfig) -> int:
    """Start the recorder and ingest until shutdown; returns the exit status."""
    install_exception_handlers(logger, asyncio.get_running_loop())
    recorder = TrackRecorder(config)
    try:
        await recorder.start()
    except RecorderSetupError as exc:
        logger.error("%s", exc)
        return 1
    return await recorder.run()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    config = RecorderConfig.load(args.config, args)

    configure_logging(
        config.log_level,
        console=config.console_output,
        log_file=config.log_file,
        max_bytes=config.log_max_bytes,
        backup_count=config.log_backup_count,
    )
    install_exception_handlers(logger)
    log_startup(
        logger,
        "GPS recorder",
        serial_port=config.serial_port,
        baud_rate=config.baud_rate,
        durable_log=config.db_path,
        output_dir=config.output_dir,
        segment_policy=config.segment_policy,
    )

    return asyncio.run(run_recorder(config))


def run(argv: Optional[Sequence[str]] = None) -> None:
    sys.exit(main(argv))


if __name__ == "__main__":
    run()
