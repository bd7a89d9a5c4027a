"""Business rules for managing users within a tenant."""

from __future__ import annotations

import logging
import math
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

import bcrypt

from .models import (
    CreateUserRequest,
    UpdateProfileRequest,
    UpdateUserRequest,
    User,
    UserListResponse,
    UserQueryRequest,
    UserResponse,
    to_user_response,
)
from .repository import UserRepository

_BCRYPT_COST = 10
_DEFAULT_STATUS = "active"
_DEFAULT_PAGE = 1
_DEFAULT_LIMIT = 20


class ServiceError(Exception):
    """Base class for errors raised by the user service."""

    default_message = "service error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class UserNotFoundError(ServiceError):
    """The requested user does not exist in the tenant."""

    default_message = "user not found"


class UserExistsError(ServiceError):
    """A user with the same e-mail address already exists in the tenant."""

    default_message = "user already exists"


class InvalidPasswordError(ServiceError):
    """The supplied password does not match."""

    default_message = "invalid password"


class UnauthorizedError(ServiceError):
    """The caller may not perform the operation."""

    default_message = "unauthorized"


class UserService:
    """Creates, reads, updates, deletes and lists users."""

    def __init__(self, repository: UserRepository, logger: Optional[logging.Logger] = None):
        self._repo = repository
        self._log = logger or logging.getLogger(__name__)

    @contextmanager
    def _logged(self, what: str) -> Iterator[None]:
        try:
            yield
        except Exception as exc:
            self._log.error("Error %s: %s", what, exc)
            raise

    def _require(self, tenant_id: str, user_id: uuid.UUID) -> User:
        with self._logged("fetching user"):
            user = self._repo.get_by_id(tenant_id, user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    def _reload(self, tenant_id: str, user_id: uuid.UUID, what: str) -> User:
        with self._logged(what):
            user = self._repo.get_by_id(tenant_id, user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    def create_user(self, tenant_id: str, request: CreateUserRequest) -> UserResponse:
        """Create a user with a hashed password; raises UserExistsError on a duplicate e-mail."""
        with self._logged("checking existing user"):
            existing = self._repo.get_by_email(tenant_id, request.email)
        if existing is not None:
            raise UserExistsError()

        with self._logged("hashing password"):
            hashed = bcrypt.hashpw(
                request.password.encode("utf-8"), bcrypt.gensalt(rounds=_BCRYPT_COST)
            ).decode("ascii")

        user = User(
            id=uuid.uuid4(),
            email=request.email,
            first_name=request.first_name,
            last_name=request.last_name,
            password_hash=hashed,
            status=request.status or _DEFAULT_STATUS,
        )
        with self._logged("creating user"):
            self._repo.create(tenant_id, user)

        created = self._reload(tenant_id, user.id, "fetching created user")
        self._log.info("User created successfully: %s", user.email)
        return to_user_response(created)

    def get_user(self, tenant_id: str, user_id: uuid.UUID) -> UserResponse:
        """Return a user by id; raises UserNotFoundError."""
        return to_user_response(self._require(tenant_id, user_id))

    def get_user_by_email(self, tenant_id: str, email: str) -> UserResponse:
        """Return a user by e-mail address; raises UserNotFoundError."""
        with self._logged("fetching user by email"):
            user = self._repo.get_by_email(tenant_id, email)
        if user is None:
            raise UserNotFoundError()
        return to_user_response(user)

    def update_user(
        self, tenant_id: str, user_id: uuid.UUID, request: UpdateUserRequest
    ) -> UserResponse:
        """Apply the non-None fields of the request to the user."""
        self._require(tenant_id, user_id)
        updates = {
            key: value
            for key, value in (
                ("first_name", request.first_name),
                ("last_name", request.last_name),
                ("status", request.status),
            )
            if value is not None
        }
        with self._logged("updating user"):
            self._repo.update(tenant_id, user_id, updates)
        updated = self._reload(tenant_id, user_id, "fetching updated user")
        self._log.info("User updated successfully: %s", updated.email)
        return to_user_response(updated)

    def delete_user(self, tenant_id: str, user_id: uuid.UUID) -> None:
        """Delete a user; raises UserNotFoundError if there is none."""
        user = self._require(tenant_id, user_id)
        with self._logged("deleting user"):
            self._repo.delete(tenant_id, user_id)
        self._log.info("User deleted successfully: %s", user.email)

    def list_users(self, tenant_id: str, query: UserQueryRequest) -> UserListResponse:
        """Return one page of users; fills in the default page and limit on the query."""
        if query.page <= 0:
            query.page = _DEFAULT_PAGE
        if query.limit <= 0:
            query.limit = _DEFAULT_LIMIT
        with self._logged("listing users"):
            users, total = self._repo.list(tenant_id, query)
        return UserListResponse(
            users=[to_user_response(user) for user in users],
            total=total,
            page=query.page,
            limit=query.limit,
            total_pages=math.ceil(total / query.limit),
        )

    def update_profile(
        self, tenant_id: str, user_id: uuid.UUID, request: UpdateProfileRequest
    ) -> UserResponse:
        """Change a user's own names; with nothing to change the user is returned as is."""
        user = self._require(tenant_id, user_id)
        updates = {
            key: value
            for key, value in (
                ("first_name", request.first_name),
                ("last_name", request.last_name),
            )
            if value is not None
        }
        if not updates:
            return to_user_response(user)
        with self._logged("updating user profile"):
            self._repo.update(tenant_id, user_id, updates)
        updated = self._reload(tenant_id, user_id, "fetching updated user")
        self._log.info("User profile updated successfully: %s", updated.email)
        return to_user_response(updated)