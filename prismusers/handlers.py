"""HTTP handlers for health checks and user management."""

from __future__ import annotations

import logging
import uuid
from http import HTTPStatus
from typing import Any, Callable, Optional

from flask import g, jsonify, request

from .models import (
    CreateUserRequest,
    UpdateProfileRequest,
    UpdateUserRequest,
    UserQueryRequest,
    ValidationError,
)
from .repository import Database
from .services import UserExistsError, UserNotFoundError, UserService

SERVICE_NAME = "prism-user-service"
_DEFAULT_TENANT = "default"
_NIL_UUID = uuid.UUID(int=0)


def _success(message: str, data: Any = None):
    return jsonify({"success": True, "message": message, "data": data}), HTTPStatus.OK


def _error(status: HTTPStatus, message: str, exc: Optional[BaseException] = None):
    body: dict[str, Any] = {"success": False, "message": message}
    if exc is not None:
        body["error"] = str(exc)
    return jsonify(body), status


def _validation_error(exc: ValidationError):
    return (
        jsonify({"success": False, "message": "Validation failed", "errors": exc.errors}),
        HTTPStatus.BAD_REQUEST,
    )


class HealthHandler:
    """Liveness and readiness endpoints."""

    def __init__(self, db: Database):
        self._db = db

    def health(self):
        return jsonify({"status": "ok", "service": SERVICE_NAME}), HTTPStatus.OK

    def ready(self):
        try:
            self._db.ping()
        except Exception:
            return (
                jsonify({"status": "not ready", "reason": "database connection failed"}),
                HTTPStatus.SERVICE_UNAVAILABLE,
            )
        return jsonify({"status": "ready"}), HTTPStatus.OK


class UserHandler:
    """User endpoints; tenant and caller come from ``flask.g``."""

    def __init__(self, service: UserService, logger: Optional[logging.Logger] = None):
        self._service = service
        self._log = logger or logging.getLogger(__name__)

    @staticmethod
    def _tenant_id() -> str:
        tenant = g.get("tenant_id")
        return tenant if isinstance(tenant, str) else _DEFAULT_TENANT

    @staticmethod
    def _current_user_id() -> Optional[uuid.UUID]:
        value = g.get("user_id")
        if isinstance(value, str):
            try:
                value = uuid.UUID(value)
            except ValueError:
                return None
        if isinstance(value, uuid.UUID) and value != _NIL_UUID:
            return value
        return None

    def _run(self, operation: Callable[[], Any], success: str, failure: str, context: str):
        try:
            result = operation()
        except UserExistsError as exc:
            return _error(HTTPStatus.CONFLICT, "User already exists", exc)
        except UserNotFoundError as exc:
            return _error(HTTPStatus.NOT_FOUND, "User not found", exc)
        except Exception as exc:
            self._log.error("Error %s: %s", context, exc)
            return _error(HTTPStatus.INTERNAL_SERVER_ERROR, failure, exc)
        return _success(success, result.to_dict() if result is not None else None)

    def create_user(self):
        try:
            req = CreateUserRequest.from_dict(request.get_json(silent=True))
        except ValidationError as exc:
            return _validation_error(exc)
        tenant = self._tenant_id()
        return self._run(
            lambda: self._service.create_user(tenant, req),
            "User created successfully",
            "Failed to create user",
            "creating user",
        )

    def get_user(self, user_id: str):
        try:
            uid = uuid.UUID(user_id)
        except ValueError as exc:
            return _error(HTTPStatus.BAD_REQUEST, "Invalid user ID", exc)
        tenant = self._tenant_id()
        return self._run(
            lambda: self._service.get_user(tenant, uid),
            "User retrieved successfully",
            "Failed to fetch user",
            "fetching user",
        )

    def update_user(self, user_id: str):
        try:
            uid = uuid.UUID(user_id)
        except ValueError as exc:
            return _error(HTTPStatus.BAD_REQUEST, "Invalid user ID", exc)
        try:
            req = UpdateUserRequest.from_dict(request.get_json(silent=True))
        except ValidationError as exc:
            return _validation_error(exc)
        tenant = self._tenant_id()
        return self._run(
            lambda: self._service.update_user(tenant, uid, req),
            "User updated successfully",
            "Failed to update user",
            "updating user",
        )

    def delete_user(self, user_id: str):
        try:
            uid = uuid.UUID(user_id)
        except ValueError as exc:
            return _error(HTTPStatus.BAD_REQUEST, "Invalid user ID", exc)
        tenant = self._tenant_id()
        return self._run(
            lambda: self._service.delete_user(tenant, uid),
            "User deleted successfully",
            "Failed to delete user",
            "deleting user",
        )

    def list_users(self):
        try:
            query = UserQueryRequest.from_query(request.args)
        except ValidationError as exc:
            return _validation_error(exc)
        tenant = self._tenant_id()
        return self._run(
            lambda: self._service.list_users(tenant, query),
            "Users retrieved successfully",
            "Failed to list users",
            "listing users",
        )

    def get_profile(self):
        uid = self._current_user_id()
        if uid is None:
            return _error(HTTPStatus.UNAUTHORIZED, "User not authenticated")
        tenant = self._tenant_id()
        return self._run(
            lambda: self._service.get_user(tenant, uid),
            "Profile retrieved successfully",
            "Failed to fetch profile",
            "fetching user profile",
        )

    def update_profile(self):
        uid = self._current_user_id()
        if uid is None:
            return _error(HTTPStatus.UNAUTHORIZED, "User not authenticated")
        try:
            req = UpdateProfileRequest.from_dict(request.get_json(silent=True))
        except ValidationError as exc:
            return _validation_error(exc)
        tenant = self._tenant_id()
        return self._run(
            lambda: self._service.update_profile(tenant, uid, req),
            "Profile updated successfully",
            "Failed to update profile",
            "updating profile",
        )