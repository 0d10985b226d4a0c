"""
tests/conftest.py -- Shared test fixtures for LiveStation auth tests.

This module provides:
  - user_store: isolated file-backed SQLite UserStore per test
  - RecordingMailer: Mailer that records links instead of sending mail
  - client: TestClient wired to the real app with a patched lifespan

The environment must be set before any auth/core import: get_settings() is
cached on first call, and tests run in development mode (DEBUG=true) with a
fixed AUTH_SECRET so tokens are reproducible.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: configure before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("AUTH_SECRET", "test-signing-secret-0123456789abcdef")
os.environ.setdefault("SITE_URL", "http://testserver")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.mailer import Mailer
from auth.store import UserStore
from core.config import get_settings


@dataclass
class SentMail:
    to_email: str
    kind: str
    link: str


class RecordingMailer(Mailer):
    """Mailer that keeps every outgoing link in memory."""

    def __init__(self) -> None:
        super().__init__(get_settings())
        self.sent: list[SentMail] = []

    def _deliver(self, to_email: str, subject: str, text: str, *, kind: str, link: str) -> None:
        self.sent.append(SentMail(to_email=to_email, kind=kind, link=link))


def _patch_lifespan(user_store: UserStore, mailer: Mailer):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store and mailer into app.state so routes never touch the
    default on-disk database or a real SMTP server.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.mailer = mailer
        yield

    return test_lifespan


@pytest.fixture()
def user_store(tmp_path) -> Generator[UserStore, None, None]:
    store = UserStore(db_url=f"sqlite:///{tmp_path / 'auth.db'}")
    yield store
    store.close()


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def client(user_store: UserStore, mailer: RecordingMailer) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with isolated store and mailer.

    follow_redirects=False so verify-email tests can assert on Location.
    """
    limiter.reset()
    app.router.lifespan_context = _patch_lifespan(user_store, mailer)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as test_client:
        yield test_client
