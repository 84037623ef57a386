"""
tests/conftest.py -- Shared test fixtures for QuizDesk integration tests.

This module provides:
  - _make_test_stores(): isolated in-memory DB shared by UserStore + QuizStore
  - FakeMailer: records OTP emails instead of opening an SMTP connection
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api: module-scoped ApiContext with a TestClient and one account per role

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any auth module import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from unittest.mock import MagicMock

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import ROLES, User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from core.mailer import MailerError
from quiz.store import QuizStore

# Route behaviour is tested with limits off; the counters are process-global
# and would leak between modules.
limiter.enabled = False

TEST_PASSWORD = "testpass123"


# ---------------------------------------------------------------------------
# Store / mailer helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, QuizStore]:
    """Create stores on one named shared-memory SQLite database.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    url = f"sqlite:///file:test_quizdesk_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url), QuizStore(db_url=url)


class FakeMailer:
    """Stand-in for core.mailer.Mailer. Set fail=True to simulate SMTP errors."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, int]] = []
        self.fail = False

    def send_otp(self, to_email: str, otp: str, ttl_seconds: int) -> None:
        if self.fail:
            raise MailerError("Failed to send email. Please try again later.")
        self.sent.append((to_email, otp, ttl_seconds))

    def last_code_for(self, email: str) -> str:
        for to_email, otp, _ttl in reversed(self.sent):
            if to_email == email:
                return otp
        raise AssertionError(f"No OTP was sent to {email}")


def _patch_lifespan(user_store: UserStore, quiz_store: QuizStore, mailer: FakeMailer):
    """Return an async context manager that replaces the real lifespan.

    The OAuth registry is a MagicMock so no test reaches accounts.google.com.
    The purge_task is a long-sleeping coroutine (a real asyncio.Task is
    required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.quiz_store = quiz_store
        app.state.mailer = mailer
        app.state.oauth = MagicMock()
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped API context
# ---------------------------------------------------------------------------


@dataclass
class ApiContext:
    client: TestClient
    user_store: UserStore
    quiz_store: QuizStore
    mailer: FakeMailer
    # role -> user id / JWT for the seeded account holding that role
    ids: dict[str, int] = field(default_factory=dict)
    tokens: dict[str, str] = field(default_factory=dict)

    def headers(self, role: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.tokens[role]}"}

    def email(self, role: str) -> str:
        return f"{role}@example.com"


@pytest.fixture(scope="module")
def api(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    One account per role is created before the client starts:
    <role>@example.com / username test<role> / password TEST_PASSWORD.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store, quiz_store = _make_test_stores(suffix)
    mailer = FakeMailer()

    ctx_ids: dict[str, int] = {}
    ctx_tokens: dict[str, str] = {}
    for role in ROLES:
        uid = user_store.create_user(
            User(
                email=f"{role}@example.com",
                username=f"test{role}",
                role=role,
                hashed_password=hash_password(TEST_PASSWORD),
            )
        )
        ctx_ids[role] = uid
        ctx_tokens[role] = create_access_token(uid, role, expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(user_store, quiz_store, mailer)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield ApiContext(
            client=client,
            user_store=user_store,
            quiz_store=quiz_store,
            mailer=mailer,
            ids=ctx_ids,
            tokens=ctx_tokens,
        )

    quiz_store.close()
    user_store.close()


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    """Function-scoped in-memory UserStore for unit tests."""
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def quiz_store() -> Generator[QuizStore, None, None]:
    """Function-scoped in-memory QuizStore for unit tests."""
    store = QuizStore("sqlite:///:memory:")
    yield store
    store.close()
