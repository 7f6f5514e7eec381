"""
InfraCity API - test configuration and fixtures
"""
import asyncio
import os

import pytest
from faker import Faker
from fastapi.testclient import TestClient

# Settings are read once at import time.
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("REFRESH_SECRET_KEY", "test-refresh-secret-for-testing-only")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from infracity_api.app.core.config import settings
from infracity_api.app.core.db import init_db
from infracity_api.app.core.security import create_access_token
from infracity_api.app.main import app
from infracity_api.app.services.user_service import UserService

fake = Faker()

PASSWORD = "testpassword123"


@pytest.fixture(autouse=True)
def database(tmp_path, monkeypatch):
    """Point the application at a fresh SQLite file for each test."""
    db_file = tmp_path / "infracity-test.db"
    monkeypatch.setattr(settings, "database_url", str(db_file))
    init_db()
    yield db_file


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def make_user(role: str = "viewer", email: str | None = None, password: str = PASSWORD):
    """Create a user directly through the service layer."""
    return asyncio.run(
        UserService.create_user(email or fake.unique.email(), password, name=fake.name(), role=role)
    )


def headers_for(user) -> dict:
    token = create_access_token({"id": user.id, "email": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_factory():
    return make_user


@pytest.fixture
def viewer():
    return make_user("viewer")


@pytest.fixture
def admin_user():
    return make_user("admin")


@pytest.fixture
def planner():
    return make_user("city_planner")


@pytest.fixture
def auth_headers(viewer) -> dict:
    """Authorization headers for an ordinary viewer account."""
    return headers_for(viewer)


@pytest.fixture
def admin_headers(admin_user) -> dict:
    return headers_for(admin_user)


@pytest.fixture
def planner_headers(planner) -> dict:
    return headers_for(planner)


@pytest.fixture
def road(client, auth_headers) -> dict:
    payload = {
        "name": "Main Street",
        "condition": 72,
        "width": 12.0,
        "lanes": 2,
        "classification": "arterial",
        "coordinates": [[40.7128, -74.006], [40.7138, -74.005]],
    }
    response = client.post("/api/infrastructure/roads", json=payload, headers=auth_headers)
    assert response.status_code == 201
    return response.json()["data"]


@pytest.fixture
def intersection(client, auth_headers) -> dict:
    payload = {
        "name": "Main St & Broadway",
        "coordinates": [40.7580, -73.9855],
        "volume": 12000,
        "avg_speed": 18.5,
        "congestion_level": "High",
        "traffic_signals": 4,
        "pedestrian_crossings": 4,
        "peak_hours": ["08:00-09:00", "17:00-18:00"],
    }
    response = client.post("/api/infrastructure/intersections", json=payload, headers=auth_headers)
    assert response.status_code == 201
    return response.json()["data"]


@pytest.fixture
def headers():
    """Return a function building Authorization headers for a user."""
    return headers_for
