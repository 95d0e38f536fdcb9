"""HTTP API for users and notes, served with Flask."""

from __future__ import annotations

import argparse
import hashlib
import json
import logging
import os
import secrets
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from flask import Flask, Response, g, request

from notely import auth, database, models

logger = logging.getLogger(__name__)

_ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE", "OPTIONS")

# Escapes that keep JSON output safe to embed in HTML.
_JSON_ESCAPES = {"<": "\\u003c", ">": "\\u003e", "&": "\\u0026",
                 "\u2028": "\\u2028", "\u2029": "\\u2029"}


def _json_default(obj: Any) -> Any:
    if callable(getattr(obj, "to_dict", None)):
        return obj.to_dict()
    raise TypeError(f"object of type {type(obj).__name__} is not JSON serializable")


def respond_with_json(code: int, payload: Any) -> Response:
    """Build a JSON response; a payload that cannot be encoded gives an empty 500."""
    try:
        text = json.dumps(payload, default=_json_default, ensure_ascii=False,
                          allow_nan=False, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        logger.error("Error marshalling JSON: %s", exc)
        return Response(b"", status=500, content_type="application/json")
    for char, escape in _JSON_ESCAPES.items():
        text = text.replace(char, escape)
    return Response(text.encode("utf-8"), status=code, content_type="application/json")


def respond_with_error(code: int, msg: str, log_err: BaseException | None = None) -> Response:
    """Log the cause and build a JSON ``{"error": msg}`` response."""
    if log_err is not None:
        logger.error("%s", log_err)
    if code > 499:
        logger.error("Responding with 5XX error: %s", msg)
    return respond_with_json(code, {"error": msg})


def generate_random_sha256_hash() -> str:
    """Return the hex SHA-256 digest of 32 random bytes."""
    return hashlib.sha256(secrets.token_bytes(32)).hexdigest()


def _now_rfc3339() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _decode_param(body: bytes, field: str) -> str:
    """Decode one string field from the first JSON value of a body.

    Keys match case-insensitively, an exact match winning; missing or null is empty.
    """
    text = body.decode("utf-8", errors="replace").lstrip(" \t\r\n")
    if not text:
        raise ValueError("EOF")
    value, _ = json.JSONDecoder().raw_decode(text)
    if value is None:
        return ""
    if not isinstance(value, dict):
        raise ValueError(f"cannot decode {type(value).__name__} into parameters")
    key = field if field in value else next(
        (k for k in value if k.lower() == field.lower()), None)
    item = value.get(key) if key is not None else None
    if item is None:
        return ""
    if not isinstance(item, str):
        raise ValueError(f"cannot decode {type(item).__name__} into field {field!r}")
    return item


def _origin_allowed(origin: str) -> bool:
    return origin.lower().startswith(("https://", "http://"))


def _install_cors(app: Flask) -> None:
    @app.before_request
    def _preflight() -> Response | None:
        if request.method != "OPTIONS" or "Access-Control-Request-Method" not in request.headers:
            return None
        g.cors_preflight = True
        response = Response(b"", status=200)
        for vary in ("Origin", "Access-Control-Request-Method", "Access-Control-Request-Headers"):
            response.headers.add("Vary", vary)
        origin = request.headers.get("Origin", "")
        method = request.headers.get("Access-Control-Request-Method", "").upper()
        if not _origin_allowed(origin) or method not in _ALLOWED_METHODS:
            return response
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Methods"] = method
        requested = request.headers.get("Access-Control-Request-Headers", "")
        if requested:
            response.headers["Access-Control-Allow-Headers"] = requested
        response.headers["Access-Control-Max-Age"] = "300"
        return response

    @app.after_request
    def _actual(response: Response) -> Response:
        if g.get("cors_preflight"):
            return response
        response.headers.add("Vary", "Origin")
        origin = request.headers.get("Origin", "")
        if _origin_allowed(origin) and request.method in _ALLOWED_METHODS:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Expose-Headers"] = "Link"
        return response


def create_app(
    queries: database.Queries | None = None,
    index_html: str | bytes | None = None,
) -> Flask:
    """Build the application; without queries only the static and health routes exist."""
    app = Flask(__name__)
    _install_cors(app)

    def index() -> Response:
        if index_html is None:
            return Response("index page is not available\n", status=500,
                            content_type="text/plain; charset=utf-8",
                            headers={"X-Content-Type-Options": "nosniff"})
        return Response(index_html, status=200, mimetype="text/html")

    app.add_url_rule("/", "index", index, methods=["GET"])
    app.add_url_rule("/v1/healthz", "readiness",
                     lambda: respond_with_json(200, {"status": "ok"}), methods=["GET"])
    if queries is None:
        return app

    def authenticated(handler: Callable[[database.User], Response]) -> Callable[[], Response]:
        @wraps(handler)
        def wrapper() -> Response:
            try:
                api_key = auth.get_api_key(request.headers)
            except auth.AuthError as exc:
                return respond_with_error(401, "Couldn't find api key", exc)
            try:
                user = queries.get_user(api_key)
            except Exception as exc:
                return respond_with_error(404, "Couldn't get user", exc)
            return handler(user)

        return wrapper

    def users_create() -> Response:
        try:
            name = _decode_param(request.get_data(), "name")
        except ValueError as exc:
            return respond_with_error(500, "Couldn't decode parameters", exc)
        api_key = generate_random_sha256_hash()
        now = _now_rfc3339()
        try:
            queries.create_user(database.User(str(uuid.uuid4()), now, now, name, api_key))
        except Exception as exc:
            return respond_with_error(500, "Couldn't create user", exc)
        try:
            stored = queries.get_user(api_key)
        except Exception as exc:
            return respond_with_error(500, "Couldn't get user", exc)
        try:
            return respond_with_json(201, models.database_user_to_user(stored))
        except ValueError as exc:
            return respond_with_error(500, "Couldn't convert user", exc)

    @authenticated
    def users_get(user: database.User) -> Response:
        try:
            return respond_with_json(200, models.database_user_to_user(user))
        except ValueError as exc:
            return respond_with_error(500, "Couldn't convert user", exc)

    @authenticated
    def notes_get(user: database.User) -> Response:
        try:
            stored = queries.get_notes_for_user(user.id)
        except Exception as exc:
            return respond_with_error(500, "Couldn't get posts for user", exc)
        try:
            return respond_with_json(200, models.database_notes_to_notes(stored))
        except ValueError as exc:
            return respond_with_error(500, "Couldn't convert posts", exc)

    @authenticated
    def notes_create(user: database.User) -> Response:
        try:
            text = _decode_param(request.get_data(), "note")
        except ValueError as exc:
            return respond_with_error(500, "Couldn't decode parameters", exc)
        note_id = str(uuid.uuid4())
        now = _now_rfc3339()
        try:
            queries.create_note(database.Note(note_id, now, now, text, user.id))
        except Exception as exc:
            return respond_with_error(500, "Couldn't create note", exc)
        try:
            stored = queries.get_note(note_id)
        except Exception as exc:
            return respond_with_error(404, "Couldn't get note", exc)
        try:
            return respond_with_json(201, models.database_note_to_note(stored))
        except ValueError as exc:
            return respond_with_error(500, "Couldn't convert note", exc)

    app.add_url_rule("/v1/users", "users_create", users_create, methods=["POST"])
    app.add_url_rule("/v1/users", "users_get", users_get, methods=["GET"])
    app.add_url_rule("/v1/notes", "notes_get", notes_get, methods=["GET"])
    app.add_url_rule("/v1/notes", "notes_create", notes_create, methods=["POST"])
    return app


def _fatal(message: str, *args: Any) -> None:
    logger.critical(message, *args)
    raise SystemExit(1)


def main(argv: Sequence[str] | None = None) -> None:
    """Load configuration from the environment and serve the API."""
    parser = argparse.ArgumentParser(prog="notely", description="Serve the notes API.")
    parser.add_argument("--index", default="static/index.html",
                        help="HTML file served at / (default: %(default)s)")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    if not load_dotenv(".env"):
        logger.warning("warning: assuming default configuration. .env unreadable")

    port = os.environ.get("PORT", "")
    if not port:
        _fatal("PORT environment variable is not set")
    if not port.isdigit():
        _fatal("PORT environment variable is not a number: %s", port)

    queries: database.Queries | None = None
    db_url = os.environ.get("DATABASE_URL", "")
    if not db_url:
        logger.info("DATABASE_URL environment variable is not set")
        logger.info("Running without CRUD endpoints")
    else:
        try:
            queries = database.Queries(database.connect(db_url))
        except (ValueError, OSError, database.sqlite3.Error) as exc:
            _fatal("%s", exc)
        logger.info("Connected to database!")

    index_path = Path(args.index)
    index_html = index_path.read_bytes() if index_path.is_file() else None

    logger.info("Serving on port: %s", port)
    try:
        create_app(queries, index_html).run(host="0.0.0.0", port=int(port))
    except OSError as exc:
        _fatal("%s", exc)


if __name__ == "__main__":
    main()