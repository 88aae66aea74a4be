"""
tests/conftest.py -- Shared test fixtures for Surveyor integration tests.

This module provides:
  - make_stores(): creates one isolated in-memory DB shared by all stores
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - make_user(): creates a user directly through the stores
  - api_client: TestClient plus two activated users with bearer tokens

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import PERMISSION_ANSWER, SCOPE_AUTHENTICATION, User
from auth.store import TokenStore, UserStore
from auth.tokens import TokenIssuer
from core.config import get_settings
from survey.store import SurveyStore

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters"


@dataclass
class Stores:
    users: UserStore
    issuer: TokenIssuer
    survey: SurveyStore

    def close(self) -> None:
        self.survey.close()
        self.issuer.store.close()
        self.users.close()


@dataclass
class Account:
    user: User
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_stores(db_suffix: str) -> Stores:
    """Create stores over one named shared-memory SQLite database.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'api', 'users').
    """
    url = f"sqlite:///file:test_surveyor_{db_suffix}?mode=memory&cache=shared&uri=true"
    return Stores(
        users=UserStore(url),
        issuer=TokenIssuer(TokenStore(url), TEST_SECRET),
        survey=SurveyStore(url),
    )


def make_user(
    stores: Stores,
    email: str,
    password: str = "pa55word-123",
    activated: bool = True,
    permissions: tuple[str, ...] = (PERMISSION_ANSWER,),
) -> Account:
    """Create a user straight through the stores and log them in."""
    user = User(name=email.split("@")[0].title(), email=email, activated=activated)
    user.password.set(password)
    user.password.clear()
    stores.users.create_user(user, permissions=permissions)
    issued = stores.issuer.issue(user.id, timedelta(hours=1), SCOPE_AUTHENTICATION)
    return Account(user=user, token=issued.plaintext)


def _patch_lifespan(stores: Stores):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.user_store = stores.users
        app.state.token_issuer = stores.issuer
        app.state.survey_store = stores.survey
        yield

    return test_lifespan


@pytest.fixture(autouse=True, scope="session")
def _disable_rate_limits() -> Generator[None, None, None]:
    """Rate limits are exercised by slowapi itself; tests make many logins."""
    limiter.enabled = False
    yield
    limiter.enabled = True


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def stores(request) -> Generator[Stores, None, None]:
    """Stores over a database private to the requesting test module."""
    s = make_stores(request.module.__name__.rsplit(".", 1)[-1])
    yield s
    s.close()


@pytest.fixture(scope="module")
def api_client(stores: Stores) -> Generator[tuple[TestClient, Account, Account], None, None]:
    """Yield (client, alice, bob) for API integration tests.

    Both accounts are activated, hold questionnaire:answer, and carry a
    one-hour authentication token. Two accounts exist so ownership rules can
    be checked from both sides.
    """
    alice = make_user(stores, "alice@example.com")
    bob = make_user(stores, "bob@example.com")

    app.router.lifespan_context = _patch_lifespan(stores)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, alice, bob
