import pytest

from prismusers.config import Config, load


def test_defaults_from_empty_environment():
    cfg = load({})
    assert cfg.service.name == "prism-user-service"
    assert cfg.service.version == "v1.0.0"
    assert cfg.service.environment == "development"
    assert cfg.server.host == "0.0.0.0"
    assert cfg.log.level == "info"
    assert cfg.log.format == "json"


def test_defaults_match_dataclass_defaults():
    assert load({}) == Config()


def test_environment_overrides():
    env = {
        "SERVICE_NAME": "users",
        "SERVICE_ENVIRONMENT": "production",
        "SERVER_HOST": "127.0.0.1",
        "SERVER_PORT": "9090",
        "LOG_LEVEL": "debug",
        "DATABASE_PATH": "/tmp/users.db",
        "JWT_SECRET": "secret",
    }
    cfg = load(env)
    assert cfg.service.name == "users"
    assert cfg.service.environment == "production"
    assert cfg.server.host == "127.0.0.1"
    assert cfg.server.port == 9090
    assert cfg.log.level == "debug"
    assert cfg.database.path == "/tmp/users.db"
    assert cfg.jwt.secret == "secret"


def test_empty_value_falls_back_to_default():
    cfg = load({"SERVICE_NAME": "", "LOG_FORMAT": ""})
    assert cfg.service.name == "prism-user-service"
    assert cfg.log.format == "json"


def test_timeouts_are_seconds():
    cfg = load({"SERVER_READ_TIMEOUT": "15", "SERVER_WRITE_TIMEOUT": "45"})
    assert cfg.server.read_timeout == 15.0
    assert cfg.server.write_timeout == 45.0


def test_invalid_port_raises():
    with pytest.raises(ValueError, match="SERVER_PORT"):
        load({"SERVER_PORT": "eighty"})


def test_reads_process_environment(monkeypatch):
    monkeypatch.setenv("SERVICE_VERSION", "v9.9.9")
    assert load().service.version == "v9.9.9"