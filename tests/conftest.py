"""
tests/conftest.py -- Shared test fixtures for EduCenter integration tests.

This module provides:
  - make_test_stores(): isolated in-memory DBs for identities + directory
  - RecordingMailer: OtpMailer stand-in that keeps every OTP it is handed
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus an active admin and its access token
  - make_user(): creates an active account of any role and returns (id, token)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.

DEBUG and RATE_LIMIT_ENABLED must be set before any auth/core import so
get_settings() auto-generates secrets and the limiter is built disabled.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any auth/core import (see module docstring).
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.flow import AuthFlow
from auth.models import STATUS_ACTIVE, Identity
from auth.store import IdentityStore
from auth.tokens import create_access_token, hash_password
from directory.store import DirectoryStore

_counter = itertools.count(1)


def unique_contact() -> tuple[str, str]:
    """Return an (email, phone) pair no other test in the session uses."""
    n = next(_counter)
    return f"user{n}@example.com", f"+998{n:09d}"


class RecordingMailer:
    """Keeps sent OTP mails in memory so tests can read the code back."""

    is_configured = True

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    def send_otp_email(self, destination: str, name: str, code: str) -> bool:
        self.sent.append((destination, name, code))
        return True

    def last_code_for(self, email: str) -> str | None:
        for destination, _name, code in reversed(self.sent):
            if destination == email:
                return code
        return None


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_test_stores(db_suffix: str) -> tuple[IdentityStore, DirectoryStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'api', 'store').
    """
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    directory_url = f"sqlite:///file:test_directory_{db_suffix}?mode=memory&cache=shared&uri=true"
    return IdentityStore(db_url=auth_url), DirectoryStore(db_url=directory_url)


def create_identity(store: IdentityStore, role: str, status: str = STATUS_ACTIVE, password: str = "secret123") -> Identity:
    email, phone = unique_contact()
    identity = Identity(
        email=email,
        phone=phone,
        full_name=f"Test {role.title()}",
        role=role,
        hashed_password=hash_password(password),
        status=status,
    )
    identity.id = store.create_identity(identity)
    return identity


def _patch_lifespan(user_store: IdentityStore, directory: DirectoryStore, mailer: RecordingMailer):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.directory = directory
        app.state.mailer = mailer
        app.state.auth_flow = AuthFlow(user_store, mailer)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use isolated in-memory stores.
    """
    suffix = f"api{next(_counter)}"
    user_store, directory = make_test_stores(suffix)
    mailer = RecordingMailer()
    admin = create_identity(user_store, "admin")
    token = create_access_token(admin, expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(user_store, directory, mailer)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, admin.id

    directory.close()
    user_store.close()


@pytest.fixture()
def mailer(api_client) -> RecordingMailer:
    client, _, _ = api_client
    return client.app.state.mailer


@pytest.fixture()
def make_user(api_client):
    """Factory: make_user("ceo") -> (identity, bearer headers) for an active account."""
    client, _, _ = api_client

    def _make(role: str = "user", status: str = STATUS_ACTIVE) -> tuple[Identity, dict]:
        identity = create_identity(client.app.state.user_store, role, status)
        token = create_access_token(identity, expire_seconds=3600)
        return identity, {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture()
def admin_headers(api_client) -> dict:
    _, token, _ = api_client
    return {"Authorization": f"Bearer {token}"}
