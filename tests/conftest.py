"""Shared test fixtures for the signature audit test suite."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from sigaudit.app import create_app
from sigaudit.config import Settings
from sigaudit.schemas.profile import MailboxSignature, Profile
from sigaudit.services.history_store import SignatureHistoryStore
from sigaudit.services.override_store import OverrideStore
from sigaudit.services.template_store import TemplateStore
from sigaudit.store import Database


class FakeDirectory:
    """In-memory directory keyed by user id."""

    def __init__(self, users=()) -> None:
        self.users = {u.id: u for u in users}
        self.updates: list[tuple[str, dict]] = []
        self.list_calls = 0
        self.update_error: Exception | None = None

    async def list_users(self) -> list[Profile]:
        self.list_calls += 1
        return [u for u in self.users.values() if u.mail]

    async def get_user(self, user_id_or_email: str) -> Profile | None:
        return self.users.get(user_id_or_email)

    async def get_user_by_email(self, email: str) -> Profile | None:
        wanted = email.lower()
        return next((u for u in self.users.values() if (u.mail or "").lower() == wanted), None)

    async def update_user(self, user_id, job_title=None, department=None, business_phone=None, mobile_phone=None):
        if self.update_error is not None:
            raise self.update_error
        changes = {
            name: value
            for name, value in (
                ("job_title", job_title),
                ("department", department),
                ("business_phone", business_phone),
                ("mobile_phone", mobile_phone),
            )
            if value is not None
        }
        self.updates.append((user_id, changes))
        if user_id not in self.users:
            return False
        self.users[user_id] = self.users[user_id].model_copy(
            update={name: value or None for name, value in changes.items()}
        )
        return True

    async def get_current_user(self) -> Profile | None:
        return None


class FakeMailbox:
    """In-memory mailbox signatures keyed by mail address."""

    def __init__(self) -> None:
        self.signatures: dict[str, MailboxSignature] = {}
        self.errors: dict[str, Exception] = {}
        self.writes: list[tuple[str, str, str | None]] = []
        self.accept = True

    async def get_signature(self, mail: str) -> MailboxSignature:
        if mail in self.errors:
            raise self.errors[mail]
        return self.signatures.get(mail, MailboxSignature())

    async def set_signature(self, mail: str, html: str, text: str | None = None) -> bool:
        if mail in self.errors:
            raise self.errors[mail]
        self.writes.append((mail, html, text))
        if self.accept:
            self.signatures[mail] = MailboxSignature(html=html, text=text)
        return self.accept


def _test_settings() -> Settings:
    """Return settings suitable for testing."""
    return Settings(
        environment="development",
        debug=True,
        log_format="console",
        rate_limit_default="1000/minute",
        rate_limit_burst="2000/minute",
        allowed_origins="http://localhost:3000,http://localhost:5015",
        database_url="sqlite://",
        tenant_id="",
        client_id="",
        client_secret="",
        history_limit=3,
    )


@pytest.fixture
def settings():
    """Test settings."""
    return _test_settings()


@pytest.fixture
def database():
    """Fresh in-memory record store."""
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def template_store(database):
    return TemplateStore(database)


@pytest.fixture
def override_store(database):
    return OverrideStore(database)


@pytest.fixture
def history_store(database):
    return SignatureHistoryStore(database, limit=3)


@pytest.fixture
def ada():
    """Fully populated profile."""
    return Profile(
        id="u-ada",
        display_name="Ada Lovelace",
        job_title="Analyst",
        department="Engineering",
        mail="ada@example.org",
        business_phone="+61 2 5550 0001",
        mobile_phone="+61 400 000 001",
    )


@pytest.fixture
def grace():
    """Profile missing a job title."""
    return Profile(
        id="u-grace",
        display_name="Grace Hopper",
        job_title=None,
        department="Nursing",
        mail="grace@example.org",
        business_phone="+61 2 5550 0002",
    )


@pytest.fixture
def nomail():
    """Profile without a mailbox."""
    return Profile(id="u-nomail", display_name="No Mail", job_title="Porter", department="Facilities")


@pytest.fixture
def sample_profiles(ada, grace):
    return [ada, grace]


@pytest.fixture
def directory(sample_profiles):
    return FakeDirectory(sample_profiles)


@pytest.fixture
def mailbox():
    return FakeMailbox()


@pytest.fixture
def app(settings, directory, mailbox):
    """Create a fresh FastAPI app for testing."""
    return create_app(settings, directory=directory, mailbox=mailbox)


@pytest.fixture
def client(app):
    """HTTP test client."""
    return TestClient(app)
