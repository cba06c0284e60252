"""Shared pytest configuration and fixtures for the recorder test suite."""

import datetime as dt
from typing import Callable

import pytest

from rpi_gps_recorder.gps_core.models import Fix, FixQuality
from rpi_gps_recorder.gps_core.parsers.nmea_parser import nmea_checksum


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "hardware: mark test as requiring a GPS receiver on a serial port"
    )


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-hardware",
        action="store_true",
        default=False,
        help="Run tests that require physical hardware",
    )


def pytest_collection_modifyitems(config, items):
    """Skip hardware tests unless --run-hardware is specified."""
    if config.getoption("--run-hardware"):
        return

    skip_hardware = pytest.mark.skip(reason="Need --run-hardware option to run")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hardware)


# =============================================================================
# Shared Fixtures
# =============================================================================

T0 = dt.datetime(2024, 5, 1, 12, 0, 0, tzinfo=dt.timezone.utc)


@pytest.fixture
def t0() -> dt.datetime:
    """A fixed UTC instant to build fix sequences from."""
    return T0


@pytest.fixture
def make_fix() -> Callable[..., Fix]:
    """Factory for fixes offset from ``T0`` by ``seconds``."""

    def _make(
        seconds: float = 0.0,
        latitude: float = 48.1173,
        longitude: float = 11.5167,
        **kwargs,
    ) -> Fix:
        kwargs.setdefault("fix_quality", FixQuality.THREE_D)
        kwargs.setdefault("satellites", 8)
        return Fix(
            timestamp=T0 + dt.timedelta(seconds=seconds),
            latitude=latitude,
            longitude=longitude,
            **kwargs,
        )

    return _make


@pytest.fixture
def nmea() -> Callable[[str], str]:
    """Frame a sentence body as ``$<body>*<checksum>``."""

    def _frame(body: str) -> str:
        return f"${body}*{nmea_checksum(body)}"

    return _frame


class SteppingClock:
    """Callable clock that advances a fixed step on every call."""

    def __init__(self, start: dt.datetime = T0, step_s: float = 1.0):
        self.now = start
        self.step = dt.timedelta(seconds=step_s)

    def __call__(self) -> dt.datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def stepping_clock() -> Callable[..., SteppingClock]:
    def _make(start: dt.datetime = T0, step_s: float = 1.0) -> SteppingClock:
        return SteppingClock(start, step_s)

    return _make
