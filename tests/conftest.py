# tests/conftest.py
import os

# Must be set before the app (and its cached settings / DB engine) is imported.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///./test_meet_sync.db")
os.environ.setdefault("ENABLE_SCHEDULER", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.main import create_app  # noqa: E402


@pytest.fixture(scope="session")
def client() -> TestClient:
    """
    Shared TestClient fixture for all API tests.

    Entering the client runs the startup hooks, which create the token table.
    """
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
