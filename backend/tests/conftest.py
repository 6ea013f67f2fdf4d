"""Shared test fixtures: in-memory SQLite store, record factory, API client."""
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from incident_dedup.api.routes import get_record_store
from incident_dedup.main import app
from incident_dedup.models import Base
from incident_dedup.modules.sql_store import SqlRecordStore
from incident_dedup.schemas.incident import IncidentRecord

# Fixed "now" for every time-dependent test
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db():
    """Create an in-memory SQLite database with the raw_data table for each test."""
    engine = create_engine("sqlite:///:memory:")

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def sql_store(db):
    return SqlRecordStore(db)


@pytest.fixture
def make_record():
    """Factory for IncidentRecord with sensible defaults; kwargs override."""
    def _make(id="recA", source="RECAAP", **kwargs) -> IncidentRecord:
        data = {"id": id, "source": source, "date": NOW}
        data.update(kwargs)
        return IncidentRecord.model_validate(data)
    return _make


@pytest.fixture
def mock_store():
    """MagicMock record store — empty query, unknown ids."""
    store = MagicMock()
    store.query.return_value = ([], None)
    store.get.return_value = None
    return store


@pytest.fixture
def api_client(mock_store):
    """TestClient with the record store dependency overridden to a MagicMock."""
    def override_get_record_store():
        yield mock_store

    app.dependency_overrides[get_record_store] = override_get_record_store
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
