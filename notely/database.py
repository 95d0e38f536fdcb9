"""SQLite storage for users and notes."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import astuple, dataclass

__all__ = [
    "NoRowsError",
    "Note",
    "User",
    "Queries",
    "create_schema",
    "connect",
]

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL,
    api_key TEXT UNIQUE NOT NULL
);
CREATE TABLE IF NOT EXISTS notes (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    note TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE
);
"""

_CREATE_NOTE = """
INSERT INTO notes (id, created_at, updated_at, note, user_id)
VALUES (?, ?, ?, ?, ?)
"""

_GET_NOTE = "SELECT id, created_at, updated_at, note, user_id FROM notes WHERE id = ?"

_GET_NOTES_FOR_USER = (
    "SELECT id, created_at, updated_at, note, user_id FROM notes WHERE user_id = ?"
)

_CREATE_USER = """
INSERT INTO users (id, created_at, updated_at, name, api_key)
VALUES (?, ?, ?, ?, ?)
"""

_GET_USER = (
    "SELECT id, created_at, updated_at, name, api_key FROM users WHERE api_key = ?"
)


class NoRowsError(LookupError):
    """A query that expects one row found none."""


@dataclass(frozen=True)
class Note:
    """A note row as stored."""

    id: str
    created_at: str
    updated_at: str
    note: str
    user_id: str


@dataclass(frozen=True)
class User:
    """A user row as stored."""

    id: str
    created_at: str
    updated_at: str
    name: str
    api_key: str


class Queries:
    """The application's queries over one SQLite connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._in_transaction = False

    @contextmanager
    def transaction(self) -> Iterator[Queries]:
        """Run queries in one transaction, committed on success, rolled back on error."""
        tx = Queries(self._conn)
        tx._in_transaction = True
        if not self._conn.in_transaction:
            self._conn.execute("BEGIN")
        try:
            yield tx
        except BaseException:
            self._conn.rollback()
            raise
        else:
            self._conn.commit()

    def _write(self, sql: str, params: tuple) -> None:
        self._conn.execute(sql, params)
        if not self._in_transaction and self._conn.in_transaction:
            self._conn.commit()

    def create_note(self, note: Note) -> None:
        """Insert a note."""
        self._write(_CREATE_NOTE, astuple(note))

    def get_note(self, note_id: str) -> Note:
        """Return the note with this id."""
        row = self._conn.execute(_GET_NOTE, (note_id,)).fetchone()
        if row is None:
            raise NoRowsError(f"no note with id {note_id!r}")
        return Note(*row)

    def get_notes_for_user(self, user_id: str) -> list[Note]:
        """Return every note belonging to a user."""
        cursor = self._conn.execute(_GET_NOTES_FOR_USER, (user_id,))
        try:
            return [Note(*row) for row in cursor]
        finally:
            cursor.close()

    def create_user(self, user: User) -> None:
        """Insert a user."""
        self._write(_CREATE_USER, astuple(user))

    def get_user(self, api_key: str) -> User:
        """Return the user holding this API key."""
        row = self._conn.execute(_GET_USER, (api_key,)).fetchone()
        if row is None:
            raise NoRowsError("no user with that api key")
        return User(*row)


def create_schema(conn: sqlite3.Connection) -> None:
    """Create the users and notes tables if they do not exist."""
    conn.executescript(_SCHEMA)
    conn.commit()


def connect(url: str) -> sqlite3.Connection:
    """Open a SQLite database from a path or ``sqlite://`` URL and ensure its schema.

    Accepted forms: a plain path, ``:memory:``, ``file:`` URIs and
    ``sqlite:///path`` (``sqlite://`` alone is an in-memory database).
    """
    if not url:
        raise ValueError("database URL is empty")
    uri = False
    if url.startswith("file:"):
        target = url
        uri = True
    elif "://" in url:
        scheme, _, rest = url.partition("://")
        if scheme.lower() != "sqlite":
            raise ValueError(f"unsupported database URL scheme: {scheme!r}")
        if not rest or rest in ("/", "/:memory:"):
            target = ":memory:"
        elif rest.startswith("/"):
            target = rest[1:]
        else:
            raise ValueError(f"malformed database URL: {url!r}")
    else:
        target = url
    conn = sqlite3.connect(target, uri=uri, check_same_thread=False)
    create_schema(conn)
    return conn