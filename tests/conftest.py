"""
tests/conftest.py -- Shared test fixtures for the task manager tests.

This module provides:
  - user_store / task_store / controller: in-memory stores for unit tests
  - alice / bob / root: Principals seeded into user_store (USER, USER, ADMIN)
  - _make_test_stores(): isolated named shared-memory DBs for API tests
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api: TestClient plus bearer headers for alice, bob and root

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API fixtures because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. Unit tests call stores directly from one thread, so plain
:memory: is fine there.

The DEBUG env var must be set before any auth module import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError. The rate
limits are raised for the same reason: the limiter's counters live for the
whole test session.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("REGISTER_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Principal, Role, User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from tasks.access import TaskAccessController
from tasks.store import TaskStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_user(store: UserStore, username: str, *roles: Role, password: str = "secret123") -> Principal:
    """Insert a user with the given roles and return the matching Principal."""
    user_id = store.create_user(
        User(
            username=username,
            email=f"{username}@example.com",
            hashed_password=hash_password(password),
            roles=[r.value for r in roles],
        )
    )
    return Principal(user_id=user_id, username=username, roles=frozenset(roles))


def bearer(principal: Principal) -> dict[str, str]:
    token = create_access_token(principal.user_id, principal.username, [r.value for r in principal.roles])
    return {"Authorization": f"Bearer {token}"}


_CLOCK_START = datetime(2026, 1, 1, tzinfo=timezone.utc)


class StepClock:
    """Deterministic clock: each call returns a timestamp one second after the last."""

    def __init__(self) -> None:
        self._counter = itertools.count()

    def __call__(self) -> str:
        return (_CLOCK_START + timedelta(seconds=next(self._counter))).isoformat()


# ---------------------------------------------------------------------------
# Unit-test fixtures (function scoped, fresh DB per test)
# ---------------------------------------------------------------------------


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def task_store() -> Generator[TaskStore, None, None]:
    store = TaskStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def alice(user_store: UserStore) -> Principal:
    return make_user(user_store, "alice", Role.USER)


@pytest.fixture
def bob(user_store: UserStore) -> Principal:
    return make_user(user_store, "bob", Role.USER)


@pytest.fixture
def root(user_store: UserStore) -> Principal:
    return make_user(user_store, "root", Role.ADMIN)


@pytest.fixture
def controller(task_store: TaskStore, user_store: UserStore) -> TaskAccessController:
    return TaskAccessController(task_store, user_store, clock=StepClock())


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, TaskStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    tasks_url = f"sqlite:///file:test_tasks_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=auth_url), TaskStore(db_url=tasks_url)


def _patch_lifespan(user_store: UserStore, task_store: TaskStore):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.task_store = task_store
        app.state.tasks = TaskAccessController(task_store, user_store)
        yield

    return test_lifespan


class ApiContext:
    """Everything an API test needs: the client and one principal per role mix."""

    def __init__(self, client: TestClient, users: UserStore, alice: Principal, bob: Principal, root: Principal):
        self.client = client
        self.users = users
        self.alice = alice
        self.bob = bob
        self.root = root

    def headers(self, principal: Principal) -> dict[str, str]:
        return bearer(principal)


@pytest.fixture(scope="module")
def api(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext backed by fresh stores for this test module.

    alice and bob are USERs (password "secret123"), root is an ADMIN.
    base_url uses localhost so TrustedHostMiddleware accepts the requests.
    """
    user_store, task_store = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1])
    alice = make_user(user_store, "alice", Role.USER)
    bob = make_user(user_store, "bob", Role.USER)
    root = make_user(user_store, "root", Role.ADMIN)

    app.router.lifespan_context = _patch_lifespan(user_store, task_store)

    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield ApiContext(client, user_store, alice, bob, root)

    user_store.close()
    task_store.close()
