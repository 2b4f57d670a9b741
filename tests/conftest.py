import os
from pathlib import Path

import pytest

# Must be set before safety_bonus is imported
TEST_DB = Path(__file__).resolve().parent / "test_driver_safety.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB}"
os.environ["LOG_FILE"] = ""

from fastapi.testclient import TestClient  # noqa: E402

from safety_bonus.client import ApiClient, FleetStore  # noqa: E402
from safety_bonus.db import reset_db  # noqa: E402
from safety_bonus.main import app  # noqa: E402


@pytest.fixture(autouse=True)
def clean_db():
    """Start every test from empty tables."""
    reset_db()
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def store(client):
    """A client store talking to the app in-process."""
    return FleetStore(ApiClient(client, prefix="/api"))
