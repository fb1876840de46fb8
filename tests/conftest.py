"""
tests/conftest.py -- Shared test fixtures for the compliance API test suite.

This module provides:
  - make_engine(): creates an isolated in-memory SQLite engine
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - engine / user_store / session_store / report_store / auth_service:
    function-scoped fixtures on a fresh database per test
  - api_client: TestClient on the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment variables must be set before any auth/core import:
  DEBUG=true                -- get_settings() auto-generates SECRET_KEY
  PASSWORD_HASH_ROUNDS=4    -- bcrypt at minimum cost keeps the suite fast
  LOGIN/REGISTER_RATE_LIMIT -- high enough that the suite never hits 429
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set these before any auth/core import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("REGISTER_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", "*")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.limiter import limiter
from api.main import app
from auth.service import AuthService
from auth.store import SessionStore, UserStore
from core.config import get_settings
from core.database import create_db_engine
from reports.store import ReportStore

STRONG_PASSWORD = "Passw0rd!"


# ---------------------------------------------------------------------------
# Engine / store helpers
# ---------------------------------------------------------------------------


def make_engine(db_suffix: str | None = None) -> Engine:
    """Create an engine on a named shared-memory SQLite database.

    Args:
        db_suffix: Appended to the DB name so test modules don't share state.
                   A random suffix is used when omitted.
    """
    name = f"test_compliance_{db_suffix or uuid.uuid4().hex}"
    return create_db_engine(f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(engine: Engine, service: AuthService, sessions: SessionStore, reports: ReportStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured database.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.engine = engine
        app.state.user_store = service.users
        app.state.session_store = sessions
        app.state.report_store = reports
        app.state.auth_service = service
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Function-scoped fixtures -- a fresh database per unit test
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = make_engine()
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def session_store(engine) -> SessionStore:
    return SessionStore(engine)


@pytest.fixture
def report_store(engine) -> ReportStore:
    return ReportStore(engine)


@pytest.fixture
def auth_service(user_store, session_store) -> AuthService:
    return AuthService(user_store, session_store, get_settings())


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient on the real app backed by an isolated database.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers, middleware and exception handlers but use
    a per-module in-memory database. Rate-limit counters are reset so limits
    consumed by one module never leak into the next.
    """
    eng = make_engine(request.module.__name__.rsplit(".", 1)[-1])
    users = UserStore(eng)
    sessions = SessionStore(eng)
    reports = ReportStore(eng)
    service = AuthService(users, sessions, get_settings())

    limiter.reset()
    app.router.lifespan_context = _patch_lifespan(eng, service, sessions, reports)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    eng.dispose()


def register(client: TestClient, email: str, password: str = STRONG_PASSWORD, full_name: str | None = None) -> dict:
    """Register through the API and return the parsed 201 body."""
    body = {"email": email, "password": password}
    if full_name is not None:
        body["fullName"] = full_name
    resp = client.post("/api/auth/register", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


def bearer(access_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}
