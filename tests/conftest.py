"""
Shared fixtures.

The settings object is built at import time, so the environment is pinned
here before anything from `src` is imported.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TRACK_ENDPOINT_RATELIMIT", "100000/second")
os.environ.setdefault("DATASET_WRITE_BACKEND", "sql")

from typing import Dict, List, Optional, Tuple

import pytest
import redis
from fastapi.testclient import TestClient
from sqlmodel import SQLModel

from src.db import build_engine
from src.errors import IngestionError
from src.models import DatasetCategory, DatasetRecord


class FakeRedis:
    """Dict-backed stand-in for the few Redis commands the cache uses."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}

    def get(self, key: str) -> Optional[str]:
        return self.store.get(key)

    def setex(self, key: str, ttl: int, value: str):
        self.store[key] = value
        self.ttls[key] = ttl
        return True


class BrokenRedis:
    """Every command fails as if the server were down."""

    def get(self, key):
        raise redis.ConnectionError("connection refused")

    def setex(self, key, ttl, value):
        raise redis.ConnectionError("connection refused")


class RecordingWriter:
    """Dataset writer that keeps every record in memory."""

    def __init__(self, fail_on: Tuple[str, ...] = ()):
        self.records: List[Tuple[DatasetCategory, DatasetRecord]] = []
        self.fail_on = fail_on

    def write(self, category: DatasetCategory, record: DatasetRecord) -> None:
        if record.blobs[0] in self.fail_on:
            raise IngestionError(f"Write to {category.value} dataset failed: OperationalError")
        self.records.append((category, record))


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so the stats branches can query from several threads."""
    db_engine = build_engine(f"sqlite:///{tmp_path / 'datasets.db'}")
    SQLModel.metadata.create_all(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def broken_redis() -> BrokenRedis:
    return BrokenRedis()


@pytest.fixture
def recording_writer() -> RecordingWriter:
    return RecordingWriter()


@pytest.fixture
def failing_writer():
    """Writer whose write fails for the given event names."""
    def factory(*event_names: str) -> RecordingWriter:
        return RecordingWriter(fail_on=event_names)
    return factory


@pytest.fixture
def client(engine, fake_redis):
    """Test client wired to the SQLite datasets and the fake Redis."""
    from src.analytics import DatasetQueryClient
    from src.api.analytics import get_query_client
    from src.cache import ResponseCache, get_response_cache
    from src.ingestion import SQLDatasetWriter, get_dataset_writer
    from src.main import app

    cache = ResponseCache(fake_redis, enabled=True)
    app.dependency_overrides[get_dataset_writer] = lambda: SQLDatasetWriter(engine)
    app.dependency_overrides[get_query_client] = lambda: DatasetQueryClient(engine)
    app.dependency_overrides[get_response_cache] = lambda: cache

    yield TestClient(app)

    app.dependency_overrides.clear()

