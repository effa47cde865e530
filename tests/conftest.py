"""
tests/conftest.py

Pytest configuration and shared fixtures for the vision_defect_stream test suite.

Slow tests are tests that talk to external services such as a local Redis server.
They are skipped by default and can be enabled with: pytest --run-slow
"""

import logging

import pytest

from vision_defect_stream.utils.config import create_test_config, get_profile


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom CLI options to pytest."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests that need external services.",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (needs external services). " "Deselected by default; use --run-slow to include them.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    """Skip slow tests unless --run-slow flag is provided."""
    if config.getoption("--run-slow"):
        return

    skip_slow = pytest.mark.skip(reason="Slow test skipped by default. Use --run-slow to enable.")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


class ManualClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start_ms: float = 1_700_000_000_000.0):
        self.now = start_ms

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def property_profile():
    return get_profile("property_defect")


@pytest.fixture
def forensic_profile():
    return get_profile("forensic")


@pytest.fixture
def multi_frame_profile():
    """Property profile requiring two sightings before confirmation."""
    return create_test_config().profile


@pytest.fixture
def quiet_logger():
    logger = logging.getLogger("vision_defect_stream.tests")
    logger.setLevel(logging.DEBUG)
    return logger
