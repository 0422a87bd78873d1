# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Service configuration loaded from an INI file and environment variables.

Values are read from an INI file (default ``config.ini``, overridable with
``MI_CONFIG``); options missing from the file fall back to environment
variables, then to built-in defaults.

Example:
    Configuration file format (config.ini)::

        [storage]
        db_path = /data/mail_intake.db

        [server]
        host = 0.0.0.0
        port = 8000
        api_token = my-secret-token

        [auth]
        enforce = true

        [rate_limit]
        limit = 10
        window_seconds = 60
        prune_interval_seconds = 300

        [logging]
        level = INFO

Environment variables (all prefixed with MI_):
    MI_CONFIG, MI_DB_PATH, MI_HOST, MI_PORT, MI_API_TOKEN, MI_ENFORCE_AUTH,
    MI_RATE_LIMIT, MI_RATE_LIMIT_WINDOW, MI_PRUNE_INTERVAL, MI_LOG_LEVEL
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .logger import get_logger

logger = get_logger("IntakeConfig")

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class IntakeSettings:
    """Resolved service settings.

    Attributes:
        db_path: SQLite database path.
        host: Bind address of the HTTP server.
        port: Bind port of the HTTP server.
        api_token: Shared secret accepted by the default session validator.
        enforce_auth: Require an authenticated session on submissions.
        rate_limit: Requests admitted per client per window.
        rate_limit_window_seconds: Rate limit window length.
        prune_interval_seconds: Interval between rate limiter prune passes.
        log_level: Root logging level name.
    """

    db_path: str = "mail_intake.db"
    host: str = "0.0.0.0"
    port: int = 8000
    api_token: Optional[str] = None
    enforce_auth: bool = True
    rate_limit: int = 10
    rate_limit_window_seconds: float = 60.0
    prune_interval_seconds: float = 300.0
    log_level: str = "INFO"


def parse_bool(value: str, key: str) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {key}: {value!r}")


def load_settings(
    config_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> IntakeSettings:
    """Load settings from an INI file with environment variable fallbacks.

    Args:
        config_path: INI file path. Defaults to ``MI_CONFIG`` or
            ``config.ini``. A missing file is not an error.
        environ: Environment mapping, defaults to ``os.environ``.

    Returns:
        The resolved :class:`IntakeSettings`.

    Raises:
        ValueError: If a numeric or boolean option cannot be parsed.
    """
    env = os.environ if environ is None else environ
    path = Path(config_path or env.get("MI_CONFIG", "config.ini"))
    parser = configparser.ConfigParser()
    if path.exists():
        parser.read(path)
        logger.info(f"Loaded configuration from {path}")

    defaults = IntakeSettings()

    def get(section: str, option: str, env_key: str) -> Optional[str]:
        if parser.has_option(section, option):
            return parser.get(section, option)
        return env.get(env_key)

    def get_int(section: str, option: str, env_key: str, default: int) -> int:
        value = get(section, option, env_key)
        if value is None or not value.strip():
            return default
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"Invalid integer for {section}.{option}: {value!r}") from None

    def get_float(section: str, option: str, env_key: str, default: float) -> float:
        value = get(section, option, env_key)
        if value is None or not value.strip():
            return default
        try:
            return float(value)
        except ValueError:
            raise ValueError(f"Invalid number for {section}.{option}: {value!r}") from None

    def get_bool(section: str, option: str, env_key: str, default: bool) -> bool:
        value = get(section, option, env_key)
        if value is None or not value.strip():
            return default
        return parse_bool(value, f"{section}.{option}")

    token = get("server", "api_token", "MI_API_TOKEN")
    if token is not None:
        token = token.strip() or None

    db_path = get("storage", "db_path", "MI_DB_PATH") or defaults.db_path

    return IntakeSettings(
        db_path=os.path.expanduser(db_path),
        host=get("server", "host", "MI_HOST") or defaults.host,
        port=get_int("server", "port", "MI_PORT", defaults.port),
        api_token=token,
        enforce_auth=get_bool("auth", "enforce", "MI_ENFORCE_AUTH", defaults.enforce_auth),
        rate_limit=get_int("rate_limit", "limit", "MI_RATE_LIMIT", defaults.rate_limit),
        rate_limit_window_seconds=get_float(
            "rate_limit", "window_seconds", "MI_RATE_LIMIT_WINDOW", defaults.rate_limit_window_seconds
        ),
        prune_interval_seconds=get_float(
            "rate_limit", "prune_interval_seconds", "MI_PRUNE_INTERVAL", defaults.prune_interval_seconds
        ),
        log_level=(get("logging", "level", "MI_LOG_LEVEL") or defaults.log_level).upper(),
    )
