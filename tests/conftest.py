"""
Shared fixtures.

Hashing uses bcrypt cost 4 to keep the suite fast; the default cost
factor has its own test. Every test gets its own signing secret.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from schoolauth.api.app import create_app
from schoolauth.auth.config import AuthConfig
from schoolauth.auth.guard import AuthorizationGuard
from schoolauth.auth.passwords import PasswordHasher
from schoolauth.auth.tokens import OneTimeTokens, SessionTokens
from schoolauth.config import Settings
from schoolauth.integrations.email import EmailService
from schoolauth.services.accounts import AccountService
from schoolauth.storage import InMemoryCredentialStore

TEST_ROUNDS = 4


class FakeClock:
    """Controllable clock for expiry tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 6, 8, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingEmailService(EmailService):
    """Captures outgoing mail instead of calling SES."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.sent: list[tuple[str, str, dict]] = []

    async def send(self, to, template, data=None, subject_override=None) -> bool:
        self.sent.append((to, template, data or {}))
        return True

    def last_token(self, template: str) -> str:
        for _, name, data in reversed(self.sent):
            if name == template:
                if "registration_url" in data:
                    return urlparse(data["registration_url"]).path.rsplit("/", 1)[-1]
                url = data.get("verify_url") or data.get("reset_url")
                return parse_qs(urlparse(url).query)["token"][0]
        raise AssertionError(f"No '{template}' email sent")


# =============================================================================
# Core fixtures
# =============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return AuthConfig(signing_key=f"test-secret-{uuid.uuid4().hex}", bcrypt_rounds=TEST_ROUNDS)


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=TEST_ROUNDS)


@pytest.fixture
def sessions(config, clock):
    return SessionTokens(config, clock=clock)


@pytest.fixture
def store():
    return InMemoryCredentialStore()


@pytest.fixture
def one_time(store, clock):
    return OneTimeTokens(store, clock=clock)


@pytest.fixture
def guard(sessions):
    return AuthorizationGuard(sessions)


@pytest.fixture
def accounts(store, hasher, sessions, one_time):
    return AccountService(store, hasher, sessions, one_time)


# =============================================================================
# API fixtures
# =============================================================================


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        jwt_secret_key=f"api-secret-{uuid.uuid4().hex}",
        bcrypt_rounds=TEST_ROUNDS,
        app_url="https://portal.example.org",
    )


@pytest.fixture
def mailer(settings):
    return RecordingEmailService(settings)


@pytest.fixture
def app(settings, mailer):
    return create_app(settings=settings, email=mailer)


@pytest.fixture
def client(app):
    return TestClient(app)
