"""
tests/conftest.py -- Shared test fixtures for Forkline integration tests.

This module provides:
  - store: an isolated AccountStore on a named shared-memory SQLite DB
  - identity / provisioner: MagicMock stand-ins for the external collaborators
  - make_client: builds a TestClient whose lifespan wires the fixtures above
    into app.state, bypassing the real startup
  - client: make_client() with default settings (bearer verification off)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
Each store gets a unique name so tests never see each other's rows.

DEBUG and ALLOWED_HOSTS must be set before any app import so get_settings()
builds a test-friendly Settings singleton.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

# CRITICAL: Set before any core/api import -- get_settings() is cached and
# TrustedHostMiddleware reads allowed_hosts at import time.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from accounts.store import AccountStore
from api.limiter import limiter
from asgi import app
from auth.flow import AuthFlow, HttpProvisioner, ProvisionResult
from auth.identity import IdentityClient
from auth.models import AuthSession, SessionUser
from core.config import Settings

# Rate limits are covered by slowapi itself; keep them out of the way here.
limiter.enabled = False

JWT_SECRET = "test-jwt-secret-0123456789abcdef0123456789"


def make_token(sub: str, email: str = "someone@example.com", secret: str = JWT_SECRET, expires_in: int = 3600) -> str:
    """Sign a token shaped like the identity provider's access tokens."""
    payload = {
        "sub": sub,
        "email": email,
        "aud": "authenticated",
        "role": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def make_session(user_id: str = "user-1", email: str = "someone@example.com") -> AuthSession:
    return AuthSession(user=SessionUser(id=user_id, email=email), access_token=make_token(user_id, email))


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    s = AccountStore(f"sqlite:///file:test_accounts_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    yield s
    s.close()


@pytest.fixture
def identity() -> MagicMock:
    fake = MagicMock(spec=IdentityClient)
    fake.sign_up.return_value = make_session()
    fake.sign_in_with_password.return_value = make_session()
    return fake


@pytest.fixture
def provisioner() -> MagicMock:
    fake = MagicMock(spec=HttpProvisioner)
    fake.ensure_user.return_value = ProvisionResult(status_code=200, text='{"ok":true}')
    return fake


# ---------------------------------------------------------------------------
# App wiring
# ---------------------------------------------------------------------------


def _patch_lifespan(settings: Settings, store: AccountStore, identity, provisioner):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test collaborators into app.state so routes see them
    rather than a real database and real network clients.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.store = store
        app.state.identity = identity
        app.state.provisioner = provisioner
        app.state.auth_flow = AuthFlow(identity, provisioner, home_path=settings.home_path)
        yield

    return test_lifespan


@pytest.fixture
def make_client(store, identity, provisioner):
    """Factory: make_client(**settings_overrides) -> TestClient (already started).

    follow_redirects=False so web tests can assert on Location headers.
    """
    clients: list[TestClient] = []

    def _make(**overrides) -> TestClient:
        settings = Settings(debug=True, **overrides)
        app.router.lifespan_context = _patch_lifespan(settings, store, identity, provisioner)
        client = TestClient(app, follow_redirects=False, raise_server_exceptions=True)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


@pytest.fixture
def secured_client(make_client) -> TestClient:
    """Client for an app with bearer verification turned on."""
    return make_client(jwt_secret=JWT_SECRET)
