"""
API fixtures: the application wired to a per-test database.
"""

import pytest
from fastapi.testclient import TestClient

from album_reviews.api.main import create_app


@pytest.fixture
def client(db_manager):
    """TestClient with the lifespan running (store handle and change hub attached)."""
    with TestClient(create_app(db_manager)) as client:
        yield client


@pytest.fixture
def user_headers():
    """Headers identifying a signed-in caller."""
    return {"X-User-Id": "user-123"}
