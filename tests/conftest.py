"""
Pytest configuration for minidb tests.

Provides temporary store directories, sample values, and settings isolation.
"""

import tempfile
from pathlib import Path

import pytest

from minidb.core.config import StoreConfig, reset_settings
from minidb.core.types import Classification, Value


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Clear the settings cache and MINIDB_* variables around each test."""
    for var in ("MINIDB_DATA_DIR", "MINIDB_SYNC_MODE", "MINIDB_SNAPSHOT_COMPRESSION", "MINIDB_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def tmp_dir():
    """Create temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store_dir(tmp_dir):
    """Path for a store that does not exist yet."""
    return tmp_dir / "minidb"


@pytest.fixture
def store_config():
    """Store config without fsync, fast for tests."""
    return StoreConfig(sync_mode="none")


@pytest.fixture
def c_value():
    return Value(originator="Dennis Ritchie", year=1972, classification=Classification.STATIC)


@pytest.fixture
def python_value():
    return Value(originator="Guido van Rossum", year=1989, classification=Classification.DYNAMIC)


@pytest.fixture
def go_value():
    return Value(originator="Rob Pike", year=2009, classification=Classification.STATIC)
