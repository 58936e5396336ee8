"""
Shared fixtures. Bcrypt cost is lowered before backend.config is imported so the suite stays fast.
"""

import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from backend.api import database
from backend.api.main import app
from backend.core.store import EntityStore


@pytest.fixture
def store() -> EntityStore:
    """Fresh store with the admin account provisioned."""
    s = EntityStore()
    s.seed_admin("admin", "admin123")
    return s


@pytest.fixture
def client():
    """API client over a clean process store; startup seeds admin/admin123."""
    database.store.reset()
    with TestClient(app) as c:
        yield c
    database.store.reset()


def login_token(client: TestClient, username: str, password: str) -> str:
    """Log in and return the token, leaving no cookie behind so callers choose their credential explicitly."""
    response = client.post("/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    client.cookies.clear()
    return response.json()["token"]


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
