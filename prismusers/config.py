"""Service configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class ServiceConfig:
    name: str = "prism-user-service"
    version: str = "v1.0.0"
    environment: str = "development"


@dataclass(frozen=True)
class DatabaseConfig:
    path: str = "prism_users.db"


@dataclass(frozen=True)
class RedisConfig:
    host: str = "localhost"
    port: int = 6379
    db: int = 0


@dataclass(frozen=True)
class JWTConfig:
    secret: str = ""
    algorithm: str = "HS256"


@dataclass(frozen=True)
class ServerConfig:
    """HTTP listener settings; timeouts are in seconds."""

    host: str = "0.0.0.0"
    port: int = 8080
    read_timeout: float = 30.0
    write_timeout: float = 30.0


@dataclass(frozen=True)
class LogConfig:
    level: str = "info"
    format: str = "json"


@dataclass(frozen=True)
class Config:
    service: ServiceConfig = field(default_factory=ServiceConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    jwt: JWTConfig = field(default_factory=JWTConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    log: LogConfig = field(default_factory=LogConfig)


def _convert(key: str, raw: str, kind: type) -> Any:
    if kind is str:
        return raw
    try:
        return kind(int(raw))
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


def load(environ: Optional[Mapping[str, str]] = None) -> Config:
    """Build a Config from a mapping (the process environment by default).

    Each setting is read from SECTION_FIELD, e.g. SERVER_PORT. Empty values
    fall back to defaults; a bad number raises ValueError.
    """
    env = os.environ if environ is None else environ
    sections = {}
    for section in fields(Config):
        section_cls = section.default_factory
        values = {}
        for item in fields(section_cls):
            key = f"{section.name}_{item.name}".upper()
            raw = env.get(key, "")
            if raw:
                values[item.name] = _convert(key, raw, type(item.default))
        sections[section.name] = section_cls(**values)
    return Config(**sections)