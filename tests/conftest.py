"""
tests/conftest.py -- Shared test fixtures for SessionGuard.

This module provides:
  - FakeClock / clock: a settable clock injected into TokenCodec and
    SessionStore so expiry is simulated without sleeping
  - users / sessions / codec / service / guard: unit-level components wired
    over plain in-memory SQLite, bcrypt at its minimum cost (4 rounds)
  - api_client: TestClient over the real app with a patched lifespan that
    builds the stack from test Settings

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
api_client because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. Unit fixtures run in one thread, so plain :memory: is fine.

The DEBUG env var must be set before any api/ import: api/limiter.py reaches
get_settings(), which refuses to build without a SECRET_KEY in production mode.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, build_components, close_components
from auth.credential import BcryptCredential
from auth.guard import AccessGuard
from auth.service import AuthService
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.config import Settings

TEST_SECRET = "test-secret-key-0123456789abcdef0123456789"
ADMIN_USERNAME = "rootadmin"
ADMIN_PASSWORD = "rootpass1"

# Integration tests register and log in far more than 10 times a minute.
limiter.enabled = False


class FakeClock:
    """Callable clock returning a UTC datetime that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Unit-level components
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_secret() -> str:
    return TEST_SECRET


@pytest.fixture
def credential() -> BcryptCredential:
    return BcryptCredential(rounds=4)


@pytest.fixture
def users() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def sessions(clock: FakeClock) -> Generator[SessionStore, None, None]:
    store = SessionStore("sqlite:///:memory:", clock=clock)
    yield store
    store.close()


@pytest.fixture
def codec(clock: FakeClock) -> TokenCodec:
    return TokenCodec(TEST_SECRET, clock=clock)


@pytest.fixture
def service(codec, sessions, users, credential) -> AuthService:
    return AuthService(codec=codec, sessions=sessions, users=users, credential=credential)


@pytest.fixture
def guard(service: AuthService, users: UserStore) -> AccessGuard:
    return AccessGuard(service, users)


# ---------------------------------------------------------------------------
# Integration client -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _test_settings(db_suffix: str) -> Settings:
    """Settings pointing at isolated named shared-memory databases.

    Args:
        db_suffix: Unique string appended to the DB names so test modules
                   don't share state.
    """
    return Settings(
        _env_file=None,
        debug=True,
        secret_key=TEST_SECRET,
        auth_db_url=f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true",
        session_db_url=f"sqlite:///file:test_sessions_{db_suffix}?mode=memory&cache=shared&uri=true",
        bcrypt_rounds=4,
        default_admin_username=ADMIN_USERNAME,
        default_admin_password=ADMIN_PASSWORD,
    )


def _patch_lifespan(settings: Settings):
    """Return a lifespan that wires the real components from test settings.

    Skips the purge task; its sweep is covered by SessionStore unit tests.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        build_components(app, settings)
        yield
        close_components(app)

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient for the module, with a seeded admin account.

    The DB suffix is the test module name so each module starts clean.
    """
    settings = _test_settings(request.module.__name__.rsplit(".", 1)[-1])
    app.router.lifespan_context = _patch_lifespan(settings)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client


@pytest.fixture(scope="module")
def admin_headers(api_client: TestClient) -> dict[str, str]:
    resp = api_client.post("/api/v1/auth/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}
