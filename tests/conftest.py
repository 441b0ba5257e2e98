"""
tests/conftest.py -- Shared test fixtures for job board integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for accounts + board
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api: an ApiHarness (TestClient + stores + helpers to create accounts and jobs)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares one
in-memory instance across all connections in the same process. Each test gets
a fresh uuid-named database.

DEBUG and RATE_LIMIT_ENABLED must be set before any core/auth/api import:
get_settings() is cached on first call and the limiter reads it at import.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

# CRITICAL: Set before any project import so get_settings() auto-generates
# SECRET_KEY in dev mode and the shared limiter is created disabled.
os.environ.setdefault("DEBUG", "true")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SMTP_HOST"] = ""

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.revocation import RevocationRegistry
from auth.store import PrincipalStore
from auth.tokens import create_access_token, hash_password
from board.store import BoardStore
from core.storage import LocalStorage

DEFAULT_PASSWORD = "secret123"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores() -> tuple[PrincipalStore, BoardStore]:
    """Create one isolated named shared-memory database and both repositories on it."""
    url = f"sqlite:///file:test_jobboard_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    return PrincipalStore(db_url=url), BoardStore(db_url=url)


def _patch_lifespan(principals: PrincipalStore, board: BoardStore, revocations: RevocationRegistry, media_dir: str):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.principal_store = principals
        app.state.board_store = board
        app.state.revocations = revocations
        app.state.storage = LocalStorage(media_dir, "/media")
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


def future_deadline(days: int = 30) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Harness
# ---------------------------------------------------------------------------


class ApiHarness:
    """TestClient plus direct store access and shortcuts for common setup.

    Accounts created through the HTTP helpers exercise the real register
    routes; create_admin() goes straight to the store because admins cannot
    self-register.
    """

    def __init__(self, client: TestClient, principals: PrincipalStore, board: BoardStore, revocations):
        self.client = client
        self.principals = principals
        self.board = board
        self.revocations = revocations
        self._seq = 0

    def _email(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}{self._seq}@example.com"

    def register_candidate(
        self, email: Optional[str] = None, name: str = "Casey Candidate", **extra
    ) -> tuple[str, int]:
        body = {"name": name, "email": email or self._email("candidate"), "password": DEFAULT_PASSWORD, **extra}
        resp = self.client.post("/api/v1/auth/register", json=body)
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        return data["access_token"], data["account"]["id"]

    def register_employer(
        self,
        email: Optional[str] = None,
        company_name: str = "Acme Corp",
        verified: bool = False,
    ) -> tuple[str, int]:
        body = {"company_name": company_name, "email": email or self._email("employer"), "password": DEFAULT_PASSWORD}
        resp = self.client.post("/api/v1/auth/employers/register", json=body)
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        if verified:
            self.principals.update_employer(data["account"]["id"], is_verified=True)
        return data["access_token"], data["account"]["id"]

    def create_admin(self, email: Optional[str] = None) -> tuple[str, int]:
        admin_id = self.principals.create_user(
            User(
                name="Site Admin",
                email=email or self._email("admin"),
                role="admin",
                hashed_password=hash_password(DEFAULT_PASSWORD),
            )
        )
        return create_access_token(admin_id, "user", "admin", expire_seconds=3600), admin_id

    def create_job(self, token: str, **overrides: Any) -> dict:
        body = {
            "title": "Backend Engineer",
            "description": "Build and run Python services.",
            "category": "Technology",
            "job_type": "Full-time",
            "location": "Berlin",
            "deadline": future_deadline(),
            **overrides,
        }
        resp = self.client.post("/api/v1/jobs", json=body, headers=bearer(token))
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    def apply(self, token: str, job_id: int, **overrides: Any):
        body = {"job_id": job_id, "resume": "https://files.example.com/cv.pdf", **overrides}
        return self.client.post("/api/v1/applications", json=body, headers=bearer(token))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def api(tmp_path) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness backed by a fresh database for every test.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers, middleware and exception handlers while using an
    isolated in-memory database and a temporary media directory.
    """
    principals, board = _make_test_stores()
    revocations = RevocationRegistry()
    app.router.lifespan_context = _patch_lifespan(principals, board, revocations, str(tmp_path / "media"))

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(client, principals, board, revocations)

    principals.close()
    board.close()


@pytest.fixture
def principal_store() -> Generator[PrincipalStore, None, None]:
    store = PrincipalStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def board_store() -> Generator[BoardStore, None, None]:
    store = BoardStore("sqlite:///:memory:")
    yield store
    store.close()
