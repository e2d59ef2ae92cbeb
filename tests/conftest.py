"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for fake_api imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from boxprovider.config import Config, Timeouts  # noqa: E402
from fake_api import FakeBrightboxAPI  # noqa: E402


@pytest.fixture
def fast_config() -> Config:
    """Config with millisecond poll intervals and short timeouts."""
    return Config(
        timeouts=Timeouts(create=5, read=5, update=5, delete=5),
        minimum_refresh_wait_seconds=0.01,
        maximum_refresh_wait_seconds=0.02,
    )


@pytest.fixture
def api() -> FakeBrightboxAPI:
    return FakeBrightboxAPI()
