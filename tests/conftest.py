"""Root conftest: shared test configuration and fixtures."""

import os

# Ensure importing the app never reaches a real database or mail provider
os.environ.setdefault("JWT_SECRET", "test-signing-secret-0123456789abcdef0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.pop("RESEND_API_KEY", None)

import threading
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from core.config import Settings
from core.database import build_session_factory
from models.base import Base
from models import user, verification, todo  # noqa: F401
from services.auth_service import AuthService
from services.email_service import EmailSender, EmailService
from services.token_service import TokenService
from services.verification_service import VerificationService

TEST_SECRET = "test-signing-secret-0123456789abcdef0123456789"


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class RecordingEmailSender(EmailSender):
    """Captures sends; addresses in ``fail_for`` return False, in ``raise_for`` raise."""

    def __init__(self):
        self.sent = []
        self.fail_for = set()
        self.raise_for = set()
        self._lock = threading.Lock()

    def send(self, to, subject, body):
        if to in self.raise_for:
            raise RuntimeError("smtp exploded")
        if to in self.fail_for:
            return False
        with self._lock:
            self.sent.append((to, subject, body))
        return True

    def to(self, address):
        return [m for m in self.sent if m[0] == address]


@pytest.fixture
def settings():
    return Settings(
        JWT_SECRET=TEST_SECRET,
        DATABASE_URL="sqlite://",
        BCRYPT_ROUNDS=4,
        SCHEDULER_ENABLED=False,
        LOG_FORMAT="text",
        RESEND_API_KEY=None,
    )


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 5, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def email_service(email_sender):
    svc = EmailService(email_sender, app_name="Todo App", code_expiry_minutes=15)
    yield svc
    svc.shutdown(wait=True)


@pytest.fixture
def token_service():
    return TokenService(TEST_SECRET, lifetime=timedelta(hours=24))


@pytest.fixture
def verification_service(session_factory, clock):
    return VerificationService(session_factory, code_expiry=timedelta(minutes=15), clock=clock)


@pytest.fixture
def auth_service(session_factory, token_service):
    return AuthService(session_factory, token_service, bcrypt_rounds=4)


@pytest.fixture
def app(settings, engine, session_factory, email_sender):
    from main import create_app

    application = create_app(settings, engine=engine, session_factory=session_factory, email_sender=email_sender)
    yield application
    application.state.services.email_service.shutdown(wait=True)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def drain_email(app):
    """Wait for queued background sends to finish."""
    return lambda: app.state.services.email_service.shutdown(wait=True)
