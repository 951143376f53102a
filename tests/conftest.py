"""Shared pytest configuration and fixtures for the mosaic_stream test suite."""

import math
import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from mosaic_stream.receiver.decoder import MosaicDecoder
from mosaic_stream.receiver.parsers.nmea_parser import compute_checksum
from mosaic_stream.receiver.parsers.sbf_blocks import (
    ATT_COV_EULER,
    ATT_EULER,
    POS_COV_GEODETIC,
    PVT_CARTESIAN,
    PVT_GEODETIC,
)

# 2024-01-10T12:00:00Z, a Wednesday in GPS week 2296
FIXED_NOW_NS = 1_704_888_000 * 1_000_000_000
# GPS time of week at FIXED_NOW_NS minus 18 s of leap seconds, i.e. 12:00:00 GPS
NOON_TOW_MS = 302_400_000


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "hardware: mark test as requiring a connected receiver"
    )
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-hardware",
        action="store_true",
        default=False,
        help="Run tests that require a connected receiver",
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
# Builders
# =============================================================================

def _zero_values(schema, overrides):
    values = {name: 0.0 if code in "fd" else 0 for name, code in schema.layout}
    values.update(overrides)
    return values


def _pvt_geodetic(**overrides):
    values = {
        "tow": NOON_TOW_MS,
        "wnc": 2296,
        "mode": 4,
        "latitude": math.radians(47.5),
        "longitude": math.radians(8.25),
        "height": 512.25,
        "undulation": 48.5,
        "nr_sv": 14,
    }
    values.update(overrides)
    return PVT_GEODETIC.encode(_zero_values(PVT_GEODETIC, values))


def _pos_cov_geodetic(**overrides):
    values = {
        "tow": NOON_TOW_MS,
        "wnc": 2296,
        "mode": 4,
        "cov_latlat": 0.25,
        "cov_lonlon": 0.5,
        "cov_hgthgt": 1.0,
        "cov_latlon": 0.125,
        "cov_lathgt": 0.0625,
        "cov_lonhgt": 0.03125,
    }
    values.update(overrides)
    return POS_COV_GEODETIC.encode(_zero_values(POS_COV_GEODETIC, values))


def _att_euler(**overrides):
    values = {
        "tow": NOON_TOW_MS,
        "wnc": 2296,
        "nr_sv": 9,
        "heading": 90.0,
        "pitch": 2.5,
        "roll": -1.5,
    }
    values.update(overrides)
    return ATT_EULER.encode(_zero_values(ATT_EULER, values))


def _att_cov_euler(**overrides):
    values = {
        "tow": NOON_TOW_MS,
        "wnc": 2296,
        "cov_headhead": 4.0,
        "cov_pitchpitch": 1.0,
        "cov_rollroll": 0.25,
        "cov_headpitch": 0.5,
        "cov_headroll": 0.125,
        "cov_pitchroll": 0.0625,
    }
    values.update(overrides)
    return ATT_COV_EULER.encode(_zero_values(ATT_COV_EULER, values))


def _pvt_cartesian(**overrides):
    values = {
        "tow": NOON_TOW_MS,
        "wnc": 2296,
        "mode": 1,
        "x": 4331297.25,
        "y": 567555.5,
        "z": 4633133.75,
    }
    values.update(overrides)
    return PVT_CARTESIAN.encode(_zero_values(PVT_CARTESIAN, values))


def _sentence(body: str) -> bytes:
    """``$body*hh\\r\\n`` with a correct checksum."""
    return f"${body}*{compute_checksum(body):02X}\r\n".encode("ascii")


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def fixed_clock():
    """Clock frozen at FIXED_NOW_NS."""
    return lambda: FIXED_NOW_NS


@pytest.fixture
def decoder(fixed_clock) -> MosaicDecoder:
    return MosaicDecoder("gnss", clock=fixed_clock)


@pytest.fixture
def pvt_geodetic_block():
    return _pvt_geodetic


@pytest.fixture
def pos_cov_geodetic_block():
    return _pos_cov_geodetic


@pytest.fixture
def att_euler_block():
    return _att_euler


@pytest.fixture
def att_cov_euler_block():
    return _att_cov_euler


@pytest.fixture
def pvt_cartesian_block():
    return _pvt_cartesian


@pytest.fixture
def nmea_sentence():
    return _sentence


@pytest.fixture
def gga_sentence() -> bytes:
    return _sentence("GPGGA,120000.00,4717.11399,N,00833.91590,E,1,08,1.01,499.6,M,48.0,M,,")
