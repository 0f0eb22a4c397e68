"""
tests/conftest.py -- Shared test fixtures for the Acquisitions API tests.

This module provides:
  - make_store(): an isolated named shared-memory SQLite UserStore
  - fast_hasher: a PasswordHasher with a low bcrypt cost for speed
  - token_service: a TokenService with a fixed test secret
  - api: module-scoped TestClient wired to an isolated store, seeded with one
    admin and one regular user, plus session tokens for both and a
    cookie() helper that turns a token into a Cookie request header
  - client: the TestClient from `api` with an empty cookie jar per test

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

DEBUG must be set before any api/ import so get_settings() auto-generates
SECRET_KEY instead of raising, and so session cookies are not marked Secure
(the TestClient talks plain http). AUTH_RATE_LIMIT is raised so the sign-in
tests do not trip the limiter.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from itertools import count

# CRITICAL: set before any api/ or core/ import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("AUTH_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Identity, Role
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters-long"

ADMIN_PASSWORD = "adminpass123"
USER_PASSWORD = "userpass123"

_db_counter = count()


def make_store(name: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    A process-wide counter is appended so two stores never share a database.
    """
    url = f"sqlite:///file:test_{name}_{next(_db_counter)}?mode=memory&cache=shared&uri=true"
    return UserStore(url)


@pytest.fixture
def fast_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(TEST_SECRET, ttl_seconds=3600)


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = make_store("unit")
    yield s
    s.close()


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


@dataclass
class SeededApi:
    client: TestClient
    store: UserStore
    tokens: TokenService
    admin: Identity
    admin_token: str
    user: Identity
    user_token: str
    admin_password: str = ADMIN_PASSWORD
    user_password: str = USER_PASSWORD

    @staticmethod
    def cookie(token: str) -> dict[str, str]:
        """Request headers carrying a session token the way a browser would."""
        return {"Cookie": f"{get_settings().cookie_name}={token}"}


def _patch_lifespan(store: UserStore, tokens: TokenService, auth: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store and services into app.state so TestClient routes see
    an isolated database instead of acquisitions.db.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.user_store = store
        app.state.tokens = tokens
        app.state.auth = auth
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api(request) -> Generator[SeededApi, None, None]:
    """Yield a TestClient plus a seeded admin and regular user with session tokens.

    Seed users:
      admin -- Ada Admin  <admin@example.com>  password ADMIN_PASSWORD
      user  -- Uma User   <user@example.com>   password USER_PASSWORD
    """
    store = make_store(request.module.__name__.rsplit(".", 1)[-1])
    settings = get_settings()
    tokens = TokenService(settings.secret_key, ttl_seconds=settings.token_expire_seconds)
    auth = AuthService(store, PasswordHasher(rounds=4))

    admin = auth.register("Ada Admin", "admin@example.com", Role.admin, ADMIN_PASSWORD)
    user = auth.register("Uma User", "user@example.com", Role.user, USER_PASSWORD)

    app.router.lifespan_context = _patch_lifespan(store, tokens, auth)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield SeededApi(
            client=client,
            store=store,
            tokens=tokens,
            admin=admin,
            admin_token=tokens.sign(admin),
            user=user,
            user_token=tokens.sign(user),
        )

    store.close()


@pytest.fixture
def client(api: SeededApi) -> Generator[TestClient, None, None]:
    """The module client with an empty cookie jar.

    sign-in / sign-up responses store the session cookie in the jar; clearing
    it keeps one test's session from leaking into the next.
    """
    api.client.cookies.clear()
    yield api.client
    api.client.cookies.clear()
