"""Table store: the CRUD surface both apps persist through.

The hosted backend exposes the tables over PostgREST (see ``ptracker.remote``);
``SqliteTableStore`` offers the same operations on a local SQLite file.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ptracker.errors import RemoteCallFailed

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    display_name TEXT NOT NULL DEFAULT '',
    avatar_url TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS activity_options (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    color TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS scheduled_activities (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    option_id TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS activity_logs (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    option_id TEXT NOT NULL,
    scheduled_id TEXT,
    started_at TEXT NOT NULL,
    ended_at TEXT NOT NULL,
    duration_minutes INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS bitmap_designs (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    "rows" INTEGER NOT NULL,
    cols INTEGER NOT NULL,
    cell_size INTEGER NOT NULL,
    cells TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_options_user ON activity_options(user_id);
CREATE INDEX IF NOT EXISTS idx_scheduled_user ON scheduled_activities(user_id, start_time);
CREATE INDEX IF NOT EXISTS idx_logs_user ON activity_logs(user_id, started_at);
CREATE INDEX IF NOT EXISTS idx_designs_user ON bitmap_designs(user_id, updated_at);
"""

# Columns per user-scoped table; anything else is rejected before it reaches SQL
TABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    "activity_options": ("id", "user_id", "name", "color", "created_at"),
    "scheduled_activities": ("id", "user_id", "option_id", "start_time", "end_time", "created_at"),
    "activity_logs": (
        "id",
        "user_id",
        "option_id",
        "scheduled_id",
        "started_at",
        "ended_at",
        "duration_minutes",
        "created_at",
    ),
    "bitmap_designs": (
        "id",
        "user_id",
        "name",
        "rows",
        "cols",
        "cell_size",
        "cells",
        "created_at",
        "updated_at",
    ),
}

# Columns holding JSON documents
JSON_COLUMNS = {"cells"}


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return format_timestamp(datetime.now(timezone.utc))


def format_timestamp(moment: datetime) -> str:
    """Format a datetime as a UTC ISO 8601 string.

    Naive datetimes are taken as local time.
    """
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def to_wire(value: Any) -> Any:
    """Convert a Python value to its store representation."""
    if isinstance(value, datetime):
        return format_timestamp(value)
    return value


class TableStore:
    """CRUD over user-owned tables.

    Every row carries a ``user_id``; listing is always scoped to one user.
    Implementations raise ``RemoteCallFailed`` for any store error.
    """

    def select(
        self,
        table: str,
        *,
        user_id: str,
        order: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """Return all rows of ``table`` owned by ``user_id``."""
        raise NotImplementedError

    def get(self, table: str, row_id: str) -> dict[str, Any] | None:
        """Return a single row by id, or None."""
        raise NotImplementedError

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert a row and return it as stored (with ``id`` and ``created_at``)."""
        raise NotImplementedError

    def update(self, table: str, row_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Patch a row and return it as stored."""
        raise NotImplementedError

    def delete(self, table: str, row_id: str) -> None:
        """Delete a row by id. Deleting a missing row is not an error."""
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self) -> "TableStore":
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()


def _check_table(table: str) -> tuple[str, ...]:
    try:
        return TABLE_COLUMNS[table]
    except KeyError:
        raise RemoteCallFailed(f"Unknown table: {table}") from None


def _check_columns(table: str, names: list[str]) -> None:
    columns = _check_table(table)
    unknown = [name for name in names if name not in columns]
    if unknown:
        raise RemoteCallFailed(f"Unknown column(s) for {table}: {', '.join(unknown)}")


def _quote(name: str) -> str:
    # "rows" is an SQL keyword
    return f'"{name}"'


class SqliteTableStore(TableStore):
    """SQLite-backed table store.

    Not thread-safe. Each thread should have its own store instance.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._init_schema()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def _init_schema(self) -> None:
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    @classmethod
    def open(cls, path: Path) -> SqliteTableStore:
        """Open or create a database at the given path."""
        conn = sqlite3.connect(path)
        conn.row_factory = sqlite3.Row
        return cls(conn)

    @classmethod
    def open_in_memory(cls) -> SqliteTableStore:
        """Create an in-memory database for testing."""
        conn = sqlite3.connect(":memory:")
        conn.row_factory = sqlite3.Row
        return cls(conn)

    def _decode(self, row: sqlite3.Row) -> dict[str, Any]:
        result = dict(row)
        for column in JSON_COLUMNS & result.keys():
            result[column] = json.loads(result[column] or "[]")
        return result

    def _encode(self, fields: dict[str, Any]) -> dict[str, Any]:
        encoded: dict[str, Any] = {}
        for key, value in fields.items():
            if key in JSON_COLUMNS:
                encoded[key] = json.dumps(value)
            else:
                encoded[key] = to_wire(value)
        return encoded

    def select(
        self,
        table: str,
        *,
        user_id: str,
        order: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        _check_table(table)
        query = f"SELECT * FROM {table} WHERE user_id = ?"
        if order is not None:
            _check_columns(table, [order])
            # rowid keeps insertion order stable between equal sort keys
            query += f" ORDER BY {_quote(order)} {'DESC' if descending else 'ASC'}, rowid ASC"
        try:
            cursor = self._conn.execute(query, (user_id,))
            return [self._decode(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise RemoteCallFailed(f"select from {table} failed: {e}") from e

    def get(self, table: str, row_id: str) -> dict[str, Any] | None:
        _check_table(table)
        try:
            cursor = self._conn.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,))
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise RemoteCallFailed(f"get from {table} failed: {e}") from e
        return self._decode(row) if row is not None else None

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        columns = _check_table(table)
        values = dict(row)
        values.setdefault("id", str(uuid.uuid4()))
        now = utc_now_iso()
        values.setdefault("created_at", now)
        if "updated_at" in columns:
            values.setdefault("updated_at", now)
        _check_columns(table, list(values))

        encoded = self._encode(values)
        names = list(encoded)
        placeholders = ", ".join("?" * len(names))
        try:
            self._conn.execute(
                f"INSERT INTO {table} ({', '.join(_quote(n) for n in names)}) VALUES ({placeholders})",
                [encoded[name] for name in names],
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise RemoteCallFailed(f"insert into {table} failed: {e}") from e

        logger.debug("Inserted %s row %s", table, values["id"])
        stored = self.get(table, values["id"])
        assert stored is not None
        return stored

    def update(self, table: str, row_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        if not fields:
            raise RemoteCallFailed("update needs at least one field")
        _check_columns(table, list(fields))
        encoded = self._encode(fields)
        assignments = ", ".join(f"{_quote(name)} = ?" for name in encoded)
        try:
            cursor = self._conn.execute(
                f"UPDATE {table} SET {assignments} WHERE id = ?",
                [*encoded.values(), row_id],
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise RemoteCallFailed(f"update of {table} failed: {e}") from e
        if cursor.rowcount == 0:
            raise RemoteCallFailed(f"No {table} row with id {row_id}")

        stored = self.get(table, row_id)
        assert stored is not None
        return stored

    def delete(self, table: str, row_id: str) -> None:
        _check_table(table)
        try:
            self._conn.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))
            self._conn.commit()
        except sqlite3.Error as e:
            raise RemoteCallFailed(f"delete from {table} failed: {e}") from e

    def ensure_user(self, email: str, display_name: str = "") -> dict[str, Any]:
        """Get the local user with this email, creating it if needed."""
        cursor = self._conn.execute("SELECT * FROM users WHERE email = ?", (email,))
        row = cursor.fetchone()
        if row is not None:
            return dict(row)

        user_id = str(uuid.uuid4())
        try:
            self._conn.execute(
                """
                INSERT INTO users (id, email, display_name, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, email, display_name or email.split("@", 1)[0], utc_now_iso()),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise RemoteCallFailed(f"Could not create user {email}: {e}") from e
        cursor = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
        return dict(cursor.fetchone())
