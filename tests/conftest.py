"""Shared pytest fixtures for GEX signal engine tests."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Import all fixtures for global availability
from tests.fixtures.chain_fixtures import *


@pytest.fixture
def lake_path(tmp_path):
    """
    Temporary Delta Lake directory for one test.

    Example:
        def test_store(lake_path):
            store = SnapshotStore(str(lake_path / "option_snapshots"))
    """
    path = tmp_path / "lake"
    path.mkdir()
    return path
