import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret-key-with-enough-bytes-for-hs256")

import pytest
from fastapi.testclient import TestClient

from userdesk.api import app
from userdesk.config import settings
from userdesk.limiter import limiter
from userdesk.models.user import User, UserData
from userdesk.repository import JsonFileRepository
from userdesk.services import UserService, get_user_service


def make_user(user_id, username, password, group, first, last, active=True):
    return User(
        user_id=user_id,
        username=username,
        password=password,
        active=active,
        user_group_id=group,
        data=UserData(
            creation_date="2024-01-15",
            first_name=first,
            last_name=last,
            phone="050-1234567",
            email=f"{username}@acme.io",
        ),
    )


SEED_USERS = [
    make_user(1, "admin", "adminpass", 1, "Ada", "Lovelace"),
    make_user(2, "editor", "editorpass", 2, "Grace", "Hopper"),
    make_user(3, "regular", "regularpass", 3, "Johnny", "Walker"),
    make_user(4, "viewer", "viewerpass", 4, "Jon", "Snow"),
    make_user(5, "drifter", "drifterpass", None, "Nina", "Simone"),
    make_user(6, "sleeper", "sleeperpass", 3, "Rip", "Winkle", active=False),
]


@pytest.fixture
def repository(tmp_path):
    """A JSON repository backed by a fresh file for each test."""
    repo = JsonFileRepository(tmp_path / "users.json")
    repo.save_users([u.model_copy(deep=True) for u in SEED_USERS])
    return repo


@pytest.fixture
def service(repository):
    return UserService(repository)


@pytest.fixture
def client(service):
    app.dependency_overrides[get_user_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Log in through the API and return the bearer header for the user."""

    def _login(username, password):
        resp = client.post(
            "/api/auth/login", json={"UserName": username, "Password": password}
        )
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['Token']}"}

    return _login


@pytest.fixture
def rate_limited(monkeypatch):
    """Turn the login limiter on with empty counters; yields the allowed attempts."""
    monkeypatch.setattr(limiter, "enabled", True)
    limiter.reset()
    yield int(settings.login_rate_limit.split("/")[0])
    limiter.reset()
