"""Current-user session and the local identity provider."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path

from ptracker.errors import NotAuthenticated
from ptracker.models import User
from ptracker.store import SqliteTableStore

logger = logging.getLogger(__name__)

AuthListener = Callable[["User | None"], None]


class AuthSession:
    """Holds the signed-in user and notifies listeners when it changes."""

    def __init__(self, user: User | None = None, access_token: str | None = None) -> None:
        self._user = user
        self._access_token = access_token
        self._listeners: list[AuthListener] = []

    @property
    def user(self) -> User | None:
        return self._user

    @property
    def access_token(self) -> str | None:
        return self._access_token

    @property
    def signed_in(self) -> bool:
        return self._user is not None

    def require_user(self) -> User:
        """Return the current user or raise NotAuthenticated."""
        if self._user is None:
            raise NotAuthenticated()
        return self._user

    def on_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def sign_in(self, user: User, access_token: str | None = None) -> None:
        self._user = user
        self._access_token = access_token
        logger.info("Signed in as %s", user.email or user.id)
        self._notify()

    def sign_out(self) -> None:
        if self._user is None:
            return
        logger.info("Signed out %s", self._user.email or self._user.id)
        self._user = None
        self._access_token = None
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._user)


class LocalIdentityProvider:
    """Identities kept in the local SQLite store, keyed by email."""

    provider = "local"

    def __init__(self, store: SqliteTableStore) -> None:
        self._store = store

    def sign_in(self, email: str, display_name: str = "") -> User:
        email = email.strip().lower()
        if not email:
            raise ValueError("Email is required")
        row = self._store.ensure_user(email, display_name.strip())
        return User.model_validate(row)


def load_session(path: Path) -> tuple[User | None, str | None]:
    """Read the persisted identity.

    Returns (None, None) when the file is missing or unreadable.
    """
    if not path.exists():
        return None, None
    try:
        with path.open("r") as f:
            data = json.load(f)
        return User.model_validate(data["user"]), data.get("access_token")
    except (json.JSONDecodeError, OSError, KeyError, ValueError) as e:
        logger.warning("Ignoring unreadable session file %s: %s", path, e)
        return None, None


def save_session(path: Path, user: User, access_token: str | None = None) -> None:
    """Persist the identity so later commands run as the same user."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as f:
        json.dump({"user": user.model_dump(), "access_token": access_token}, f, indent=2)


def clear_session(path: Path) -> bool:
    """Remove the persisted identity. Returns True if a file was removed."""
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
