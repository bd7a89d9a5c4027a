"""User records, request payloads with validation, and response shapes."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

_STATUSES = ("active", "inactive", "pending")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(ValueError):
    """A payload failed validation; ``errors`` maps field to message."""

    def __init__(self, errors: Mapping[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))


@dataclass
class Role:
    name: str
    description: str = ""
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass
class User:
    email: str
    first_name: str
    last_name: str
    password_hash: str = ""
    status: str = "active"
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    roles: list[Role] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def _status_error(value: str, allow_empty: bool) -> Optional[str]:
    if value in _STATUSES or (allow_empty and value == ""):
        return None
    return f"must be one of {' '.join(_STATUSES)}"


class _Reader:
    """Reads fields from a JSON object, collecting errors."""

    def __init__(self, data: Any):
        if not isinstance(data, Mapping):
            raise ValidationError({"body": "must be a JSON object"})
        self.data = data
        self.errors: dict[str, str] = {}

    def text(self, key, *, required=False, low=0, high=None, status=None):
        """``status`` is None for free text, otherwise whether "" is allowed."""
        value = self.data.get(key)
        problem = None
        if value is None or (required and value == ""):
            problem = "is required" if required else None
        elif not isinstance(value, str):
            problem = "must be a string"
        elif len(value) < low:
            problem = f"must be at least {low} characters"
        elif high is not None and len(value) > high:
            problem = f"must be at most {high} characters"
        elif status is not None:
            problem = _status_error(value, status)
        if problem:
            self.errors[key] = problem
            return None
        return value

    def name(self, key, required=False):
        return self.text(key, required=required, low=2, high=50)

    def role_ids(self) -> list[str]:
        value = self.data.get("role_ids")
        if value is None:
            return []
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            self.errors["role_ids"] = "must be a list of strings"
            return []
        return list(value)

    def check(self) -> None:
        if self.errors:
            raise ValidationError(self.errors)


@dataclass
class CreateUserRequest:
    email: str
    first_name: str
    last_name: str
    password: str
    status: str = ""
    role_ids: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "CreateUserRequest":
        r = _Reader(data)
        email = r.text("email", required=True)
        if email is not None and not _EMAIL_RE.match(email):
            r.errors["email"] = "must be a valid email address"
        values = dict(
            email=email,
            first_name=r.name("first_name", required=True),
            last_name=r.name("last_name", required=True),
            password=r.text("password", required=True, low=8),
            status=r.text("status", status=True) or "",
            role_ids=r.role_ids(),
        )
        r.check()
        return cls(**values)


@dataclass
class UpdateUserRequest:
    """``None`` fields are left unchanged."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    status: Optional[str] = None
    role_ids: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "UpdateUserRequest":
        r = _Reader(data)
        values = dict(
            first_name=r.name("first_name"),
            last_name=r.name("last_name"),
            status=r.text("status", status=False),
            role_ids=r.role_ids(),
        )
        r.check()
        return cls(**values)


@dataclass
class UpdateProfileRequest:
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "UpdateProfileRequest":
        r = _Reader(data)
        values = dict(first_name=r.name("first_name"), last_name=r.name("last_name"))
        r.check()
        return cls(**values)


def _all(args: Any, key: str) -> list[str]:
    if callable(getattr(args, "getlist", None)):
        return list(args.getlist(key))
    value = args.get(key)
    if value is None:
        return []
    return [str(v) for v in (value if isinstance(value, (list, tuple)) else [value])]


def _first(args: Any, key: str) -> Optional[str]:
    value = args.get(key)
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _int(args: Any, key: str, errors: dict, low: int, high: Optional[int] = None) -> int:
    raw = _first(args, key)
    if raw is None or raw == "":
        return 0
    try:
        value = int(raw)
    except (TypeError, ValueError):
        errors[key] = "must be an integer"
        return 0
    if value != 0 and value < low or (high is not None and value > high):
        errors[key] = (f"must be at least {low}" if high is None
                       else f"must be between {low} and {high}")
    return value


@dataclass
class UserQueryRequest:
    """Filters, sorting and pagination for listing users."""

    page: int = 0
    limit: int = 0
    status: str = ""
    role: str = ""
    sort: str = ""
    search: str = ""
    role_ids: list[str] = field(default_factory=list)

    @classmethod
    def from_query(cls, args: Mapping[str, Any]) -> "UserQueryRequest":
        errors: dict[str, str] = {}
        page = _int(args, "page", errors, 1)
        limit = _int(args, "limit", errors, 1, 100)
        status = _first(args, "status") or ""
        if problem := _status_error(status, True):
            errors["status"] = problem
        if errors:
            raise ValidationError(errors)
        return cls(
            page=page,
            limit=limit,
            status=status,
            role=_first(args, "role") or "",
            sort=_first(args, "sort") or "",
            search=_first(args, "search") or "",
            role_ids=_all(args, "role_ids"),
        )


@dataclass
class UserResponse:
    """User data returned to clients; never includes the password hash."""

    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    status: str
    roles: list[Role]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "status": self.status,
            "roles": [
                {"id": str(r.id), "name": r.name, "description": r.description}
                for r in self.roles
            ],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class UserListResponse:
    users: list[UserResponse]
    total: int
    page: int
    limit: int
    total_pages: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "users": [user.to_dict() for user in self.users],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "total_pages": self.total_pages,
        }


def to_user_response(user: User) -> UserResponse:
    """Build the client-facing view of a stored user."""
    return UserResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        status=user.status,
        roles=list(user.roles),
        created_at=user.created_at,
        updated_at=user.updated_at,
    )