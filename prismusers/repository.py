"""SQLite-backed storage for users and roles, scoped by tenant."""

from __future__ import annotations

import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Mapping, Optional

from .models import Role, User, UserQueryRequest

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY, tenant_id TEXT NOT NULL, email TEXT NOT NULL,
    first_name TEXT NOT NULL, last_name TEXT NOT NULL, password_hash TEXT NOT NULL,
    status TEXT NOT NULL, created_at TEXT NOT NULL, updated_at TEXT NOT NULL,
    UNIQUE (tenant_id, email)
);
CREATE TABLE IF NOT EXISTS roles (
    id TEXT PRIMARY KEY, tenant_id TEXT NOT NULL, name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS user_roles (
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    role_id TEXT NOT NULL REFERENCES roles(id) ON DELETE CASCADE,
    PRIMARY KEY (user_id, role_id)
);
"""

_UPDATABLE = frozenset({"email", "first_name", "last_name", "status", "password_hash"})
_SORTS = {
    f"{column}:{direction}": (column, direction.upper())
    for column in ("email", "created_at", "first_name", "last_name")
    for direction in ("asc", "desc")
}
_DEFAULT_SORT = ("created_at", "DESC")
_LINK_ROLE = "INSERT OR IGNORE INTO user_roles (user_id, role_id) VALUES (?, ?)"


def _timestamp(value: Optional[datetime] = None) -> str:
    value = value or datetime.now(timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _uuid_or_nil(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        return uuid.UUID(int=0)


class Database:
    """A SQLite connection with the user schema in place."""

    def __init__(self, path: str = ":memory:"):
        self.path = path
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(_SCHEMA)

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock, self._conn:
            yield self._conn

    def ping(self) -> None:
        """Run a trivial query; raises sqlite3.Error if the database is unusable."""
        with self._lock:
            self._conn.execute("SELECT 1").fetchone()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


class UserRepository:
    """Reads and writes users within a tenant."""

    def __init__(self, db: Database):
        self._db = db

    @staticmethod
    def _to_user(conn: sqlite3.Connection, row: sqlite3.Row) -> User:
        roles = conn.execute(
            "SELECT roles.* FROM roles JOIN user_roles ON roles.id = user_roles.role_id "
            "WHERE user_roles.user_id = ? ORDER BY roles.name, roles.id",
            (row["id"],),
        )
        return User(
            id=uuid.UUID(row["id"]),
            email=row["email"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            password_hash=row["password_hash"],
            status=row["status"],
            roles=[Role(id=uuid.UUID(r["id"]), name=r["name"], description=r["description"])
                   for r in roles],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def create(self, tenant_id: str, user: User) -> None:
        """Insert a user, filling in missing timestamps and linking its roles."""
        now = datetime.now(timezone.utc)
        user.created_at = user.created_at or now
        user.updated_at = user.updated_at or now
        with self._db._transaction() as conn:
            conn.execute(
                "INSERT INTO users (id, tenant_id, email, first_name, last_name, "
                "password_hash, status, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (str(user.id), tenant_id, user.email, user.first_name, user.last_name,
                 user.password_hash, user.status,
                 _timestamp(user.created_at), _timestamp(user.updated_at)),
            )
            conn.executemany(_LINK_ROLE, [(str(user.id), str(r.id)) for r in user.roles])

    def _get_one(self, tenant_id: str, column: str, value: str) -> Optional[User]:
        with self._db._transaction() as conn:
            row = conn.execute(
                f"SELECT * FROM users WHERE tenant_id = ? AND {column} = ? LIMIT 1",
                (tenant_id, value),
            ).fetchone()
            return self._to_user(conn, row) if row is not None else None

    def get_by_id(self, tenant_id: str, user_id: uuid.UUID) -> Optional[User]:
        return self._get_one(tenant_id, "id", str(user_id))

    def get_by_email(self, tenant_id: str, email: str) -> Optional[User]:
        return self._get_one(tenant_id, "email", email)

    def update(self, tenant_id: str, user_id: uuid.UUID, updates: Mapping[str, Any]) -> None:
        """Set the given columns on a user and bump its update time."""
        unknown = set(updates) - _UPDATABLE
        if unknown:
            raise ValueError(f"cannot update columns: {', '.join(sorted(unknown))}")
        if not updates:
            return
        assignments = "".join(f"{column} = ?, " for column in updates)
        with self._db._transaction() as conn:
            conn.execute(
                f"UPDATE users SET {assignments}updated_at = ? WHERE tenant_id = ? AND id = ?",
                [*updates.values(), _timestamp(), tenant_id, str(user_id)],
            )

    def delete(self, tenant_id: str, user_id: uuid.UUID) -> None:
        with self._db._transaction() as conn:
            conn.execute(
                "DELETE FROM users WHERE tenant_id = ? AND id = ?", (tenant_id, str(user_id))
            )

    def list(self, tenant_id: str, query: UserQueryRequest) -> tuple[list[User], int]:
        """Return the matching page of users and the total number of matches."""
        where = ["users.tenant_id = ?"]
        params: list[Any] = [tenant_id]
        joins = ""
        if query.status:
            where.append("users.status = ?")
            params.append(query.status)
        if query.search:
            where.append(
                "(users.first_name LIKE ? OR users.last_name LIKE ? OR users.email LIKE ?)"
            )
            params += [f"%{query.search}%"] * 3
        if query.role_ids:
            joins = " JOIN user_roles ON users.id = user_roles.user_id"
            where.append(f"user_roles.role_id IN ({', '.join('?' * len(query.role_ids))})")
            params += [str(_uuid_or_nil(r)) for r in query.role_ids]
        base = f"FROM users{joins} WHERE {' AND '.join(where)}"

        column, direction = _SORTS.get(query.sort, _DEFAULT_SORT)
        sql = f"SELECT users.* {base} ORDER BY users.{column} {direction}, users.rowid {direction}"
        page_params = list(params)
        if query.page > 0 and query.limit > 0:
            sql += " LIMIT ? OFFSET ?"
            page_params += [query.limit, (query.page - 1) * query.limit]

        with self._db._transaction() as conn:
            total = conn.execute(f"SELECT COUNT(*) {base}", params).fetchone()[0]
            rows = conn.execute(sql, page_params).fetchall()
            return [self._to_user(conn, row) for row in rows], total

    def add_role(self, tenant_id: str, role: Role) -> Role:
        with self._db._transaction() as conn:
            conn.execute(
                "INSERT INTO roles (id, tenant_id, name, description) VALUES (?, ?, ?, ?)",
                (str(role.id), tenant_id, role.name, role.description),
            )
        return role

    def assign_role(self, tenant_id: str, user_id: uuid.UUID, role_id: uuid.UUID) -> None:
        """Grant a role to a user; raises LookupError if either is not in the tenant."""
        with self._db._transaction() as conn:
            for table, kind, key in (("users", "user", user_id), ("roles", "role", role_id)):
                found = conn.execute(
                    f"SELECT 1 FROM {table} WHERE tenant_id = ? AND id = ?", (tenant_id, str(key))
                ).fetchone()
                if found is None:
                    raise LookupError(f"{kind} {key} not found")
            conn.execute(_LINK_ROLE, (str(user_id), str(role_id)))