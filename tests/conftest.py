"""Shared fixtures for TradeSense tests."""

import tempfile
from pathlib import Path

import pytest

from fakes import FakeClock, FakeProvider
from tradesense.db.store import DataStore


@pytest.fixture
def temp_store():
    """Create a DataStore in a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield DataStore(Path(tmpdir) / "test.db")


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def clock():
    return FakeClock()
