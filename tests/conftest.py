"""
tests/conftest.py -- Shared test fixtures for ServiceHub tests.

This module provides:
  - make_settings(): Settings with a test secret and an isolated in-memory DB
  - settings / token_service: unit-test fixtures, no app involved
  - api_client: TestClient over create_app() with one account per role

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

Settings are built explicitly, so no environment variables need to be set
before importing the app.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import create_app
from auth.models import Role, User
from auth.tokens import TokenService, hash_password
from core.config import Settings

TEST_SECRET = "test-secret-key-for-servicehub-0123456789"
TEST_PASSWORD = "Str0ng!Pass"


def make_settings(db_suffix: str, **overrides) -> Settings:
    """Build Settings for tests without reading .env.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    values = {
        "jwt_secret": TEST_SECRET,
        "database_url": f"sqlite:///file:test_servicehub_{db_suffix}?mode=memory&cache=shared&uri=true",
        "_env_file": None,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings("unit")


@pytest.fixture
def token_service(settings: Settings) -> TokenService:
    return TokenService(settings)


# ---------------------------------------------------------------------------
# Module-scoped app fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------

_SEED_ACCOUNTS = {
    Role.admin: ("Amina Admin", "admin@servicehub.example.com", "0711000001"),
    Role.ops: ("Otieno Ops", "ops@servicehub.example.com", "0711000002"),
    Role.finance: ("Faith Finance", "finance@servicehub.example.com", "0711000003"),
    Role.provider: ("Peter Provider", "provider@servicehub.example.com", "0711000004"),
    Role.customer: ("Carol Customer", "customer@servicehub.example.com", "0711000005"),
}


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, dict[Role, dict]], None, None]:
    """Yield (client, accounts) for API integration tests.

    accounts maps each Role to {"id", "email", "token"} for a seeded user
    whose password is TEST_PASSWORD. The rate limiter is reset so login
    counts from other modules do not leak in.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    app = create_app(make_settings(suffix))
    limiter.reset()

    with TestClient(app, raise_server_exceptions=True) as client:
        store = app.state.user_store
        tokens = app.state.token_service
        accounts: dict[Role, dict] = {}
        for role, (name, email, phone) in _SEED_ACCOUNTS.items():
            uid = store.create_user(
                User(name=name, email=email, phone=phone, role=role, hashed_password=hash_password(TEST_PASSWORD))
            )
            accounts[role] = {"id": uid, "email": email, "token": tokens.issue(str(uid), email, role)}
        yield client, accounts


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
