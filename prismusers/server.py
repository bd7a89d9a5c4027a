"""Application assembly, authentication middleware and the server entry point."""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sqlite3
import sys
import threading
import uuid
from http import HTTPStatus
from socketserver import ThreadingMixIn
from typing import Callable, Optional, Sequence
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

import jwt
from flask import Blueprint, Flask, g, jsonify, request

from .config import Config, JWTConfig, LogConfig, load
from .handlers import HealthHandler, UserHandler
from .repository import Database, UserRepository
from .services import UserService

_LOGGER_NAME = "prismusers"
_TENANT_HEADER = "X-Tenant-ID"
_REQUEST_ID_HEADER = "X-Request-ID"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}


def get_log_level(level: str) -> int:
    """Map a level name to a logging level; unknown names mean INFO."""
    return _LEVELS.get(level.lower(), logging.INFO)


def _unauthorized(message: str):
    return jsonify({"success": False, "message": message}), HTTPStatus.UNAUTHORIZED


def require_auth(jwt_config: JWTConfig) -> Callable[[], Optional[tuple]]:
    """Build a before-request hook that demands a valid bearer token.

    On success the token's ``user_id`` (or ``sub``) and ``tenant_id`` claims
    are stored on ``flask.g``; otherwise a 401 response is returned.
    """

    def check():
        if request.method == "OPTIONS":
            return None
        header = request.headers.get("Authorization", "")
        scheme, _, credentials = header.partition(" ")
        if not header:
            return _unauthorized("Authorization header required")
        if scheme.lower() != "bearer" or not credentials.strip():
            return _unauthorized("Invalid authorization header format")
        try:
            claims = jwt.decode(
                credentials.strip(),
                jwt_config.secret,
                algorithms=[jwt_config.algorithm],
            )
        except jwt.InvalidTokenError:
            return _unauthorized("Invalid token")
        g.claims = claims
        user_id = claims.get("user_id", claims.get("sub"))
        if user_id is not None:
            g.user_id = str(user_id)
        tenant_id = claims.get("tenant_id")
        if isinstance(tenant_id, str) and tenant_id:
            g.tenant_id = tenant_id
        return None

    return check


def _install_global_middleware(app: Flask) -> None:
    @app.before_request
    def _prepare():
        g.request_id = request.headers.get(_REQUEST_ID_HEADER) or str(uuid.uuid4())
        tenant = request.headers.get(_TENANT_HEADER)
        if tenant:
            g.tenant_id = tenant
        if request.method == "OPTIONS":
            return "", HTTPStatus.NO_CONTENT
        return None

    @app.after_request
    def _decorate(response):
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = (
            f"Content-Type, Authorization, {_TENANT_HEADER}, {_REQUEST_ID_HEADER}"
        )
        request_id = g.get("request_id")
        if request_id:
            response.headers[_REQUEST_ID_HEADER] = request_id
        return response


def create_app(config: Config, db: Database) -> Flask:
    """Wire the repository, service and handlers into a Flask application."""
    logger = logging.getLogger(_LOGGER_NAME)
    service = UserService(UserRepository(db), logger)
    health = HealthHandler(db)
    users = UserHandler(service, logger)

    app = Flask(_LOGGER_NAME)
    app.config["PRISM_CONFIG"] = config
    app.config["PROPAGATE_EXCEPTIONS"] = False
    _install_global_middleware(app)

    app.add_url_rule("/health", "health", health.health, methods=["GET"])
    app.add_url_rule("/ready", "ready", health.ready, methods=["GET"])

    api = Blueprint("api_v1", _LOGGER_NAME, url_prefix="/api/v1")
    api.before_request(require_auth(config.jwt))
    api.add_url_rule("/users", "create_user", users.create_user, methods=["POST"])
    api.add_url_rule("/users", "list_users", users.list_users, methods=["GET"])
    api.add_url_rule("/users/profile", "get_profile", users.get_profile, methods=["GET"])
    api.add_url_rule("/users/profile", "update_profile", users.update_profile, methods=["PUT"])
    api.add_url_rule("/users/<user_id>", "get_user", users.get_user, methods=["GET"])
    api.add_url_rule("/users/<user_id>", "update_user", users.update_user, methods=["PUT"])
    api.add_url_rule("/users/<user_id>", "delete_user", users.delete_user, methods=["DELETE"])
    app.register_blueprint(api)
    return app


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def _configure_logging(log_config: LogConfig) -> logging.Logger:
    handler = logging.StreamHandler()
    if log_config.format.lower() == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger = logging.getLogger(_LOGGER_NAME)
    logger.handlers[:] = [handler]
    logger.setLevel(get_log_level(log_config.level))
    return logger


class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


def _handler_class(timeout: float, logger: logging.Logger) -> type:
    class _RequestHandler(WSGIRequestHandler):
        def log_message(self, format, *args):  # noqa: A002
            logger.debug("%s - %s", self.address_string(), format % args)

    _RequestHandler.timeout = timeout or None
    return _RequestHandler


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the HTTP server until SIGINT or SIGTERM; returns the exit status."""
    parser = argparse.ArgumentParser(
        prog="prism-user-service",
        description="Run the user management HTTP service.",
    )
    parser.parse_args(argv)

    try:
        config = load()
    except ValueError as exc:
        print(f"Failed to load configuration: {exc}", file=sys.stderr)
        return 1

    log = _configure_logging(config.log)

    try:
        db = Database(config.database.path)
    except sqlite3.Error as exc:
        log.critical("Failed to connect to database: %s", exc)
        return 1

    with db:
        app = create_app(config, db)
        address = f"{config.server.host}:{config.server.port}"
        try:
            server = make_server(
                config.server.host,
                config.server.port,
                app,
                server_class=_ThreadingWSGIServer,
                handler_class=_handler_class(config.server.read_timeout, log),
            )
        except OSError as exc:
            log.critical("Failed to start server: %s", exc)
            return 1

        stop = threading.Event()

        def _on_signal(signum, frame):
            stop.set()

        previous = {
            sig: signal.signal(sig, _on_signal) for sig in (signal.SIGINT, signal.SIGTERM)
        }
        worker = threading.Thread(target=server.serve_forever, daemon=True)
        try:
            log.info("Starting server on %s", address)
            worker.start()
            while not stop.wait(0.5):
                pass
            log.info("Shutting down server...")
            server.shutdown()
            worker.join(timeout=30)
        finally:
            server.server_close()
            for sig, handler in previous.items():
                signal.signal(sig, handler)
        log.info("Server exited")
    return 0