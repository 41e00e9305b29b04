# mediagate/conftest.py
import os

# Settings are read at import time; pin test mode before anything imports them.
os.environ.setdefault("ENV", "test")

import pytest


@pytest.fixture(scope="function")
def db():
    """
    Fresh in-memory SQLite database with every table created.

    The engine is process-global, so it is disposed after each test.
    """
    from mediagate.core.database import init_engine, create_all_tables, dispose_engine

    init_engine("sqlite://")
    create_all_tables()
    yield
    dispose_engine()


@pytest.fixture(scope="function")
def client(db):
    """TestClient over the real app, bound to the in-memory database."""
    from fastapi.testclient import TestClient
    from mediagate.main import app

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
