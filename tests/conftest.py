"""
Pytest configuration and fixtures for the data exchange tests.

The application settings are read at import time, so the environment is
pointed at an in-memory SQLite database before anything from ``app`` is
imported. Every test gets freshly created tables and its own export
directory.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SKIP_DB_INIT"] = "1"
os.environ["STORAGE_PROVIDER"] = "local"
os.environ.setdefault("ANTHROPIC_API_KEY", "")

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import draft_registry
from app.core.config import settings
from app.db.session import Base, create_all_tables, get_engine
from app.domain.entities.store import SqlEntityStore


@pytest.fixture(autouse=True)
def database():
    """Create all tables before each test and drop them afterwards."""
    create_all_tables()
    yield get_engine()
    Base.metadata.drop_all(bind=get_engine())


@pytest.fixture(autouse=True)
def export_dir(tmp_path, monkeypatch):
    target = tmp_path / "exports"
    monkeypatch.setattr(settings, "storage_local_dir", str(target))
    monkeypatch.setattr(settings, "storage_provider", "local")
    return target


@pytest.fixture(autouse=True)
def clear_drafts():
    draft_registry.clear()
    yield
    draft_registry.clear()


@pytest.fixture
def client():
    """Create a test client."""
    from app.main import app

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def store():
    return SqlEntityStore()
