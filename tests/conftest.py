"""Shared fixtures: an in-memory store and a signed-in session."""

import pytest

from ptracker.auth import AuthSession, LocalIdentityProvider
from ptracker.models import User
from ptracker.store import SqliteTableStore


@pytest.fixture
def store():
    store = SqliteTableStore.open_in_memory()
    yield store
    store.close()


@pytest.fixture
def user(store) -> User:
    return LocalIdentityProvider(store).sign_in("ada@example.com", "Ada")


@pytest.fixture
def auth(user) -> AuthSession:
    return AuthSession(user)
