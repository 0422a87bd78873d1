"""Tests for settings loading from config.ini and environment."""

import pytest

from mail_intake.config import IntakeSettings, load_settings


def test_defaults_without_file_or_env(tmp_path):
    settings = load_settings(str(tmp_path / "missing.ini"), environ={})
    assert settings == IntakeSettings()
    assert settings.enforce_auth is True
    assert settings.rate_limit == 10
    assert settings.rate_limit_window_seconds == 60.0


def test_values_from_config_file(tmp_path):
    config_file = tmp_path / "config.ini"
    config_file.write_text("""
[storage]
db_path = /data/intake.db

[server]
host = 127.0.0.1
port = 9000
api_token = file-token

[auth]
enforce = off

[rate_limit]
limit = 5
window_seconds = 30
prune_interval_seconds = 120

[logging]
level = debug
""")

    settings = load_settings(str(config_file), environ={})
    assert settings.db_path == "/data/intake.db"
    assert settings.host == "127.0.0.1"
    assert settings.port == 9000
    assert settings.api_token == "file-token"
    assert settings.enforce_auth is False
    assert settings.rate_limit == 5
    assert settings.rate_limit_window_seconds == 30.0
    assert settings.prune_interval_seconds == 120.0
    assert settings.log_level == "DEBUG"


def test_environment_fallbacks(tmp_path):
    env = {
        "MI_DB_PATH": "~/intake.db",
        "MI_PORT": "8123",
        "MI_API_TOKEN": "  ",
        "MI_ENFORCE_AUTH": "false",
        "MI_RATE_LIMIT": "3",
    }
    settings = load_settings(str(tmp_path / "missing.ini"), environ=env)
    assert not settings.db_path.startswith("~")
    assert settings.port == 8123
    assert settings.api_token is None
    assert settings.enforce_auth is False
    assert settings.rate_limit == 3


def test_file_takes_precedence_over_environment(tmp_path):
    config_file = tmp_path / "config.ini"
    config_file.write_text("[rate_limit]\nlimit = 7\n")
    settings = load_settings(str(config_file), environ={"MI_RATE_LIMIT": "99"})
    assert settings.rate_limit == 7


def test_config_path_from_environment(tmp_path):
    config_file = tmp_path / "custom.ini"
    config_file.write_text("[server]\nport = 7000\n")
    settings = load_settings(environ={"MI_CONFIG": str(config_file)})
    assert settings.port == 7000


@pytest.mark.parametrize("env", [
    {"MI_PORT": "eighty"},
    {"MI_ENFORCE_AUTH": "maybe"},
    {"MI_RATE_LIMIT_WINDOW": "soon"},
])
def test_invalid_values_raise(tmp_path, env):
    with pytest.raises(ValueError):
        load_settings(str(tmp_path / "missing.ini"), environ=env)
