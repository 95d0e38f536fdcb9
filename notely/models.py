"""API-facing models and conversion from stored rows."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from notely import database

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(?:Z|([+-])(\d{2}):(\d{2}))"
)


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into a timezone-aware datetime."""
    match = _RFC3339.fullmatch(value)
    if match is None:
        raise ValueError(f"cannot parse {value!r} as RFC 3339")
    *fields, fraction, sign, off_h, off_m = match.groups()
    tz = timezone.utc
    if sign:
        if int(off_h) >= 24 or int(off_m) >= 60:
            raise ValueError(f"time zone offset out of range in {value!r}")
        delta = timedelta(hours=int(off_h), minutes=int(off_m))
        tz = timezone(-delta if sign == "-" else delta)
    microsecond = int((fraction or "")[:6].ljust(6, "0"))
    return datetime(*map(int, fields), microsecond, tzinfo=tz)


def format_rfc3339(value: datetime) -> str:
    """Format a datetime as RFC 3339 with a trimmed fraction; naive means UTC."""
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset()
    if not offset:
        return text + "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = int(abs(offset).total_seconds()) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class User:
    """A user as presented by the API."""

    id: str
    created_at: datetime
    updated_at: datetime
    name: str
    api_key: str

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation."""
        return {
            "id": self.id,
            "created_at": format_rfc3339(self.created_at),
            "updated_at": format_rfc3339(self.updated_at),
            "name": self.name,
            "api_key": self.api_key,
        }


@dataclass(frozen=True)
class Note:
    """A note as presented by the API."""

    id: str
    created_at: datetime
    updated_at: datetime
    note: str
    user_id: str

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation."""
        return {
            "id": self.id,
            "created_at": format_rfc3339(self.created_at),
            "updated_at": format_rfc3339(self.updated_at),
            "note": self.note,
            "user_id": self.user_id,
        }


def database_user_to_user(user: database.User) -> User:
    """Convert a stored user, parsing its timestamps."""
    return User(
        user.id,
        parse_rfc3339(user.created_at),
        parse_rfc3339(user.updated_at),
        user.name,
        user.api_key,
    )


def database_note_to_note(note: database.Note) -> Note:
    """Convert a stored note, parsing its timestamps."""
    return Note(
        note.id,
        parse_rfc3339(note.created_at),
        parse_rfc3339(note.updated_at),
        note.note,
        note.user_id,
    )


def database_notes_to_notes(notes: Iterable[database.Note]) -> list[Note]:
    """Convert stored notes, failing on the first bad timestamp."""
    return [database_note_to_note(note) for note in notes]