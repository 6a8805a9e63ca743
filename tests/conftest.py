"""
Shared fixtures for the cleanup engine tests.
"""

import pytest
from prometheus_client import CollectorRegistry

from hivekeeper.monitoring.history import SqliteHistoryRecorder
from hivekeeper.monitoring.metrics import CleanupMetrics
from hivekeeper.repository import SqliteHousekeepingRepository
from tests.fakes import InMemoryCatalog, InMemoryObjectStore


@pytest.fixture
def store():
    return InMemoryObjectStore()


@pytest.fixture
def catalog():
    return InMemoryCatalog()


@pytest.fixture
def metrics():
    return CleanupMetrics(registry=CollectorRegistry())


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "hivekeeper.db")


@pytest.fixture
def repository(db_path):
    return SqliteHousekeepingRepository(db_path)


@pytest.fixture
def history(db_path):
    return SqliteHistoryRecorder(db_path)
