# prismusers

A small multi-tenant user management service. It exposes a JSON REST API
for creating, reading, updating, deleting and listing users, plus profile
endpoints for the authenticated user. Users are stored in SQLite, every
request is scoped to a tenant, and the user routes need a JWT bearer token.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Running the server

```
prism-user-service
```

The command takes no options besides `--help`. It serves until it receives
SIGINT or SIGTERM, then shuts down. It exits with status 1 if the
configuration cannot be read, the database cannot be opened or the address
cannot be bound.

### Configuration

Every setting is read from an environment variable named
`SECTION_FIELD`. Empty or unset variables keep the default. Numeric
settings must be whole numbers, or loading fails with `ValueError`.

| Variable               | Default              |
|------------------------|----------------------|
| `SERVICE_NAME`         | `prism-user-service` |
| `SERVICE_VERSION`      | `v1.0.0`             |
| `SERVICE_ENVIRONMENT`  | `development`        |
| `DATABASE_PATH`        | `prism_users.db`     |
| `REDIS_HOST`           | `localhost`          |
| `REDIS_PORT`           | `6379`               |
| `REDIS_DB`             | `0`                  |
| `JWT_SECRET`           | empty                |
| `JWT_ALGORITHM`        | `HS256`              |
| `SERVER_HOST`          | `0.0.0.0`            |
| `SERVER_PORT`          | `8080`               |
| `SERVER_READ_TIMEOUT`  | `30` (seconds)       |
| `SERVER_WRITE_TIMEOUT` | `30` (seconds)       |
| `LOG_LEVEL`            | `info`               |
| `LOG_FORMAT`           | `json`               |

`LOG_LEVEL` accepts `debug`, `info`, `warn`/`warning`, `error` and
`fatal`, in any case. Any other value means `info`. With `LOG_FORMAT=json`
each log line is a JSON object; any other value gives plain text lines.
`SERVER_READ_TIMEOUT` is applied to client connections. The Redis settings
and `SERVER_WRITE_TIMEOUT` are loaded into the configuration but nothing
in the server uses them.

## Endpoints

Health checks, no authentication needed:

- `GET /health`: always answers `{"status": "ok", "service": "prism-user-service"}`
- `GET /ready`: `200` with `{"status": "ready"}` when the database answers
  a query, `503` with `{"status": "not ready", ...}` otherwise

User routes, all under `/api/v1`:

- `POST /api/v1/users`: create a user
- `GET /api/v1/users`: list users
- `GET /api/v1/users/<id>`: fetch one user
- `PUT /api/v1/users/<id>`: update a user's names and status
- `DELETE /api/v1/users/<id>`: delete a user
- `GET /api/v1/users/profile`: fetch the authenticated user
- `PUT /api/v1/users/profile`: update the authenticated user's names

### Authentication and tenants

User routes need an `Authorization: Bearer token` header whose token
verifies against `JWT_SECRET` with `JWT_ALGORITHM`. A missing header, a
header in another format, or a token that does not verify answers `401`.
The token's `user_id` claim (or `sub` if there is none) names the caller
for the profile routes; without it they answer `401`.

The tenant is taken from the token's `tenant_id` claim, otherwise from the
`X-Tenant-ID` request header, otherwise it is `default`. Every response
carries permissive CORS headers and an `X-Request-ID` header, which echoes
the request's own or is a fresh UUID. `OPTIONS` requests answer `204`.

### Responses

Successful calls answer `200` with
`{"success": true, "message": ..., "data": ...}`. Failures answer
`{"success": false, "message": ..., "error": ...}` with `400` for an
invalid user id, `404` for an unknown user, `409` for a duplicate e-mail
and `500` otherwise. Payloads that fail validation answer `400` with
`"message": "Validation failed"` and an `errors` object mapping each field
to its problem.

### Creating a user

```json
{
  "email": "jane@example.com",
  "first_name": "Jane",
  "last_name": "Doe",
  "password": "password",
  "status": "active"
}
```

`email`, `first_name`, `last_name` and `password` are required. Names are
2 to 50 characters, passwords at least 8. `status` is one of `active`,
`inactive` or `pending` and defaults to `active`. Passwords are stored as
bcrypt hashes and never returned. A second user with the same e-mail in
the same tenant answers `409 Conflict`.

### Listing users

Query parameters:

- `page` (from 1, default 1)
- `limit` (1 to 100, default 20)
- `status` (`active`, `inactive` or `pending`)
- `search`: substring match on first name, last name or e-mail,
  ignoring case for ASCII letters
- `role_ids` (repeatable): only users holding one of these roles
- `sort`: one of `email`, `created_at`, `first_name`, `last_name`
  followed by `:asc` or `:desc`; newest first otherwise

The reply's `data` holds `users`, `total`, `page`, `limit` and
`total_pages`.

## Using it from Python

```python
import os

from prismusers.config import load
from prismusers.repository import Database
from prismusers.server import create_app

config = load(os.environ)
db = Database("users.db")
app = create_app(config, db)
app.run(host=config.server.host, port=config.server.port)
```

`Database()` with no path opens an in-memory database; the tables are
created when it is opened. The layers can also be used directly:

- `prismusers.repository.UserRepository` stores users per tenant
  (`create`, `get_by_id`, `get_by_email`, `update`, `delete`, `list`) and
  manages roles with `add_role` and `assign_role`.
- `prismusers.services.UserService` applies the business rules and raises
  `UserNotFoundError` or `UserExistsError`, both subclasses of
  `ServiceError`, where a request cannot be met.
- `prismusers.models` holds the request types, whose `from_dict` and
  `from_query` raise `ValidationError`, and the response types with
  `to_dict`.

## What it does not do

- It does not issue tokens or offer a login endpoint; tokens must be
  signed elsewhere with the shared secret.
- The HTTP API does not manage roles. `role_ids` in create and update
  payloads is checked but not applied; roles are created and granted only
  through `UserRepository.add_role` and `UserRepository.assign_role`.
- It does not connect to Redis.