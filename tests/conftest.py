"""Shared pytest fixtures for the application tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from flask import Flask
from flask.testing import FlaskClient

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app import create_app  # noqa: E402
from config import Config  # noqa: E402
from models import db  # noqa: E402
from models.user import User  # noqa: E402
from services import tokens  # noqa: E402
from utils.errors import MailDeliveryError  # noqa: E402


class _BaseTestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    JWT_SECRET_KEY = "test-jwt-access-secret-with-enough-length"
    JWT_VERIFY_SECRET_KEY = "test-jwt-verify-secret-with-enough-length"
    JWT_RESET_SECRET_KEY = "test-jwt-reset-secret-with-enough-length"
    FRONTEND_URL = "https://medequip.example"
    STORAGE_BACKEND = "local"
    UPLOAD_BASE_URL = "/uploads"
    MAIL_SUPPRESS_SEND = True
    RATE_LIMIT = "1000 per minute"
    CORS_ORIGINS = "*"
    LOG_LEVEL = "WARNING"


class RecordingMailer:
    """Stands in for the SMTP mailer and keeps every message it was asked to send."""

    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    def send(self, kind: str, recipient: str, token: str) -> None:
        if self.fail:
            raise MailDeliveryError()
        self.sent.append({"kind": kind, "recipient": recipient, "token": token})

    def last_token(self, kind: str) -> str:
        for message in reversed(self.sent):
            if message["kind"] == kind:
                return message["token"]
        raise AssertionError(f"no {kind} message was sent")


def build_test_config(tmp_path: Path, **overrides) -> type[Config]:
    class TestConfig(_BaseTestConfig):
        UPLOAD_DIR = str(tmp_path / "uploads")

    for key, value in overrides.items():
        setattr(TestConfig, key, value)
    return TestConfig


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def app(tmp_path, mailer) -> Flask:
    """Create a Flask application instance for tests."""

    application = create_app(build_test_config(tmp_path), mailer=mailer)

    with application.app_context():
        db.create_all()

    yield application

    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Return a test client for the Flask app."""

    return app.test_client()


@pytest.fixture()
def make_user(app: Flask):
    """Return a factory that persists a user and returns its id."""

    counter = {"n": 0}

    def _make_user(
        email: str | None = None,
        password: str = "Passw0rd!",
        role: str = "user",
        *,
        verified: bool = True,
        **fields,
    ) -> int:
        counter["n"] += 1
        with app.app_context():
            user = User(
                email=email or f"user{counter['n']}@example.com",
                firstname=fields.pop("firstname", "Test"),
                lastname=fields.pop("lastname", "User"),
                role=role,
                is_verified=verified,
                **fields,
            )
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return user.id

    return _make_user


@pytest.fixture()
def auth_headers(app: Flask):
    """Return a factory building an ``Authorization`` header for a user id."""

    def _auth_headers(user_id: int) -> dict[str, str]:
        with app.app_context():
            user = db.session.get(User, user_id)
            token = tokens.issue_token(user, tokens.ACCESS)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
