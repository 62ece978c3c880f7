"""Shared fixtures for analytics tests."""
import pytest

from backend.app.analytics.store import SqliteRecordStore

from fakes import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sqlite_store(tmp_path, clock):
    return SqliteRecordStore(tmp_path / "visits.sqlite3", clock=clock)
