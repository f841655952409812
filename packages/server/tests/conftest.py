"""
Shared fixtures for server tests: in-memory SQLite, fake Redis and a logged email outbox.
"""

from __future__ import annotations

import uuid

import pytest
from httpx import ASGITransport, AsyncClient

from acme_server.core import auth as auth_module
from acme_server.core.config import Settings
from acme_server.core.csrf import CsrfStore
from acme_server.core.database import Database
from acme_server.core.email import LogEmailSender
from acme_server.main import create_app
from acme_server.models.membership import Membership
from acme_server.models.organization import Organization
from acme_server.models.user import User

TEST_PASSWORD = "correct-horse-battery"


class FakeRedis:
    """The subset of redis.asyncio.Redis used by CsrfStore."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def setex(self, key: str, ttl: int, value: str) -> None:
        self.data[key] = value
        self.ttls[key] = ttl

    async def get(self, key: str):
        return self.data.get(key)

    async def delete(self, key: str) -> int:
        self.ttls.pop(key, None)
        return 1 if self.data.pop(key, None) is not None else 0


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr(auth_module, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="test",
        database_url="sqlite+aiosqlite:///:memory:",
        secret_key="test-secret-key-with-enough-length-for-hs256",
        debug=True,
        log_level="warning",
        log_format="text",
        app_url="http://app.test",
    )


@pytest.fixture
async def db(settings):
    database = Database(settings.database_url)
    await database.create_all()
    yield database
    await database.dispose()


@pytest.fixture
async def session(db):
    async with db.session_factory() as s:
        yield s


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def email_sender() -> LogEmailSender:
    return LogEmailSender()


@pytest.fixture
def app(settings, db, fake_redis, email_sender):
    return create_app(
        settings,
        database=db,
        csrf_store=CsrfStore(fake_redis, settings.csrf_token_ttl_seconds),
        email_sender=email_sender,
    )


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------

async def make_user(session, name: str = "Test User", email: str | None = None) -> User:
    user = User(
        email=email or f"{uuid.uuid4().hex[:10]}@example.com",
        name=name,
        password_hash=auth_module.hash_password(TEST_PASSWORD),
    )
    session.add(user)
    await session.commit()
    return user


async def make_org(session, name: str = "Org", slug: str | None = None) -> Organization:
    org = Organization(name=name, slug=slug or f"org-{uuid.uuid4().hex[:8]}")
    session.add(org)
    await session.commit()
    return org


async def add_member(session, user: User, org: Organization, role: str) -> Membership:
    membership = Membership(user_id=user.id, organization_id=org.id, role=role)
    session.add(membership)
    await session.commit()
    return membership


async def signup(client: AsyncClient, name: str = "Alice Smith", email: str | None = None) -> dict:
    email = email or f"{uuid.uuid4().hex[:10]}@example.com"
    resp = await client.post(
        "/api/v1/auth/signup",
        json={
            "name": name,
            "email": email,
            "password": TEST_PASSWORD,
            "confirm_password": TEST_PASSWORD,
        },
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def login_headers(client: AsyncClient, email: str) -> dict[str, str]:
    resp = await client.post(
        "/api/v1/auth/login", json={"email": email, "password": TEST_PASSWORD}
    )
    assert resp.status_code == 200, resp.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {resp.json()['token']}"}


async def signup_and_login(client: AsyncClient, name: str = "Alice Smith") -> tuple[dict, dict]:
    data = await signup(client, name=name)
    headers = await login_headers(client, data["user"]["email"])
    return data, headers
