"""
tests/conftest.py -- Shared fixtures for SessionGate integration tests.

This module provides:
  - _patch_lifespan(): wires test stores and the fake OAuth provider into
    app.state, bypassing the real startup
  - fake_provider: module-scoped FakeProvider (see tests/fakes.py)
  - api_client: TestClient over the real app, follow_redirects=False

Environment variables must be set before any api/ import because the app
module reads get_settings() at import time.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before importing api.main so get_settings() sees them.
os.environ.setdefault("UI_URL", "https://ui.example.test")
os.environ.setdefault("API_BASE_URL", "http://testserver")
os.environ.setdefault("GITHUB_CLIENT_ID", "github-client-id")
os.environ.setdefault("GITHUB_CLIENT_SECRET", "github-client-secret")
os.environ.setdefault("GOOGLE_CLIENT_ID", "google-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "google-client-secret")
os.environ.setdefault("OAUTH_RATE_LIMIT", "5/minute")

import httpx
import pytest
from fastapi.testclient import TestClient

from api.hooks import build_oauth_flows
from api.main import app
from auth.store import SessionStore, UserStore
from core.config import get_settings
from tests.fakes import FakeProvider, make_engine


def _patch_lifespan(engine, transport: httpx.AsyncBaseTransport):
    """Return a lifespan that replaces the real one.

    Stores share one isolated in-memory engine; OAuth flows are built from the
    real settings but talk to the fake provider transport.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        settings = get_settings()
        app.state.user_store = UserStore(engine)
        app.state.session_store = SessionStore(engine, settings.session_expiration_seconds)
        app.state.oauth_flows = build_oauth_flows(settings, app.state.user_store, transport=transport)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture(scope="module")
def api_client(fake_provider: FakeProvider) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with isolated stores.

    follow_redirects=False is essential: the tests assert on redirect
    Location headers, which are invisible once the client follows them.
    """
    engine = make_engine("test_api")
    app.router.lifespan_context = _patch_lifespan(engine, fake_provider.transport)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client

    engine.dispose()
