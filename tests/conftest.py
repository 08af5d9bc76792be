"""
Shared test fixtures.

APP_ENV must be set before `models` is imported so DBStorage binds to an
in-memory SQLite database.
"""
import os

os.environ["APP_ENV"] = "test"

import pytest  # noqa: E402

from api import create_app  # noqa: E402
from models import storage  # noqa: E402
from models.repositories import RefreshTokenRepository, UserRepository  # noqa: E402
from models.user import User  # noqa: E402
from utils.security import hash_password  # noqa: E402

DEFAULT_PASSWORD = "Passw0rd1"


@pytest.fixture(autouse=True)
def clean_db():
    """Fresh tables for every test."""
    storage.reset()
    yield
    storage.close()


@pytest.fixture
def app():
    return create_app("test")


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions["user_management"]


@pytest.fixture
def outbox(services, monkeypatch):
    """Capture delivered emails instead of talking to SMTP."""
    sent = []

    def fake_deliver(to_email, subject, body):
        sent.append({"to": to_email, "subject": subject, "body": body})
        return True

    monkeypatch.setattr(services.email, "deliver", fake_deliver)
    return sent


@pytest.fixture
def user_repo():
    return UserRepository(storage)


@pytest.fixture
def token_repo():
    return RefreshTokenRepository(storage)


@pytest.fixture
def make_user(user_repo):
    """Insert a user directly, bypassing registration."""
    def _make(username="alice", email=None, password=DEFAULT_PASSWORD, roles=("USER",), enabled=True):
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            password_hash=hash_password(password),
            roles=list(roles),
            enabled=enabled,
            email_verified=enabled,
        )
        return user_repo.save(user)

    return _make
