"""Pytest configuration and shared fixtures for Tether tests."""

import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest

from tether.config.app import TetherConfig


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def default_config() -> TetherConfig:
    """Create a default TetherConfig for testing."""
    return TetherConfig()

