"""Extraction of API keys from request headers."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class AuthError(Exception):
    """Base class for authentication header problems."""


class NoAuthHeaderError(AuthError):
    """The request carried no Authorization header."""

    def __init__(self) -> None:
        super().__init__("no authorization header included")


class MalformedAuthHeaderError(AuthError):
    """The Authorization header is not of the form ``ApiKey <key>``."""

    def __init__(self) -> None:
        super().__init__("malformed authorization header")


def get_api_key(headers: Mapping[str, Any]) -> str:
    """Return the API key from an ``Authorization: ApiKey <key>`` header."""
    value = next(
        (v for k, v in headers.items() if k.lower() == "authorization"), ""
    )
    if isinstance(value, (list, tuple)):
        value = value[0] if value else ""
    if not value:
        raise NoAuthHeaderError()
    parts = str(value).split(" ")
    if len(parts) < 2 or parts[0] != "ApiKey":
        raise MalformedAuthHeaderError()
    return parts[1]