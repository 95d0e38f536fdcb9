# notely

A small JSON web service that lets people create an account and keep notes.
It serves a landing page, a health check, and, when a database is configured,
endpoints for creating users and reading and writing their notes. Storage is
SQLite, through Python's `sqlite3` module; the web layer is Flask.

## Running the server

The `notely` command starts the server on all interfaces. It reads its
settings from the environment, and from a `.env` file in the working
directory if one exists:

- `PORT`: the port to listen on. Required. The server refuses to start
  without it, and also if it is not a number.
- `DATABASE_URL`: where the SQLite database lives. Optional. Without it the
  server still starts, but only the landing page and the health check are
  available. It accepts a plain file path, `:memory:`, a `file:` URI, or
  `sqlite:///path/to/db` (plain `sqlite://` opens an in-memory database).
  The `users` and `notes` tables are created if they are missing.

```
PORT=8080 DATABASE_URL=sqlite:///notely.db notely
```

One option is available:

- `--index PATH`: the HTML file served at `/`. The default is
  `static/index.html`, relative to the working directory. If the file does not
  exist, `/` answers `500` with a plain-text message.

Cross-origin requests are allowed from any `http://` or `https://` origin for
the methods `GET`, `POST`, `PUT`, `DELETE` and `OPTIONS`. Preflight requests
are answered with the requested method and headers, a max age of 300 seconds,
and `Link` listed as an exposed header on actual responses.

## Endpoints

| Method | Path          | Auth | Description                              |
|--------|---------------|------|------------------------------------------|
| GET    | `/`           | no   | The landing page.                        |
| GET    | `/v1/healthz` | no   | Returns `{"status": "ok"}`.              |
| POST   | `/v1/users`   | no   | Creates a user from `{"name": ...}`.     |
| GET    | `/v1/users`   | yes  | Returns the authenticated user.          |
| GET    | `/v1/notes`   | yes  | Lists the authenticated user's notes.    |
| POST   | `/v1/notes`   | yes  | Creates a note from `{"note": ...}`.     |

Creating a user returns an `api_key` among its fields. This key is the
hex SHA-256 digest of 32 random bytes. Authenticated requests send it in the
`Authorization` header with the `ApiKey` scheme:

```
Authorization: ApiKey placeholder
```

A missing or malformed header gets `401`, and a key that matches no user gets
`404`. A request body that is not valid JSON gets `500`. Errors from the
`/v1` endpoints come back as JSON of the form `{"error": "..."}`. Successful
creation answers `201`.

Users look like:

```json
{
  "id": "…",
  "created_at": "2024-01-01T12:00:00Z",
  "updated_at": "2024-01-01T12:00:00Z",
  "name": "alice",
  "api_key": "…"
}
```

Notes carry `id`, `created_at`, `updated_at`, `note` and `user_id`. Timestamps
are RFC 3339 in UTC.

## Using it as a library

You can build the application in-process, for example in tests or behind
another WSGI server:

```python
import sqlite3

from notely.app import create_app
from notely.database import Queries, create_schema

conn = sqlite3.connect(":memory:", check_same_thread=False)
create_schema(conn)

app = create_app(Queries(conn), "<html><body>notely</body></html>")
client = app.test_client()
print(client.get("/v1/healthz").get_json())
```

Calling `create_app()` with no queries gives an app with only `/` and
`/v1/healthz`.

The modules:

- `notely.database`: the `User` and `Note` rows, `Queries` (`create_user`,
  `get_user`, `create_note`, `get_note`, `get_notes_for_user`, and a
  `transaction()` context manager), `create_schema(conn)` and `connect(url)`.
  Lookups that find nothing raise `NoRowsError`.
- `notely.models`: the API-facing `User` and `Note` with `to_dict()`, the
  converters `database_user_to_user`, `database_note_to_note` and
  `database_notes_to_notes`, and `parse_rfc3339` / `format_rfc3339`.
- `notely.auth`: `get_api_key(headers)` extracts the key. When it cannot, it
  raises `NoAuthHeaderError` or `MalformedAuthHeaderError`, both of which are
  `AuthError`s.
- `notely.app`: `create_app`, `main`, and the response helpers
  `respond_with_json` and `respond_with_error`.

## What it does not do

The package does not ship a landing page. Point `--index` at your own HTML
file. The only database it supports is SQLite. It has no endpoints for
updating or deleting users or notes.