"""Load sqlpack.toml and resolve settings from CLI, environment and profiles.

Precedence for every value: explicit CLI value > environment variable
(``{env_prefix}NAME``) > profile from sqlpack.toml > built-in default.
"""

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path

from sqlpack.config.models import (
    DEFAULT_ODBC_DRIVER,
    DEFAULT_SERVER,
    ConnectionProfile,
    ConnectionSettings,
    LogLevel,
    LogSettings,
    SqlPackConfig,
)
from sqlpack.errors import ConfigError, ProfileNotFoundError

CONFIG_FILE_NAME = "sqlpack.toml"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def parse_bool(value: str | None) -> bool:
    """Interpret an environment string as a boolean flag."""
    return (value or "").strip().lower() in _TRUE_VALUES


def env_value(
    name: str,
    env_prefix: str = "",
    environ: Mapping[str, str] | None = None,
) -> str | None:
    """Look up ``{env_prefix}{name}``; empty strings count as unset."""
    environ = os.environ if environ is None else environ
    value = environ.get(f"{env_prefix}{name}")
    return value if value else None


def load_config(config_path: Path | None = None) -> SqlPackConfig:
    """Load sqlpack configuration from a TOML file.

    Args:
        config_path: Explicit path to a config file.  When ``None``, reads
            ``sqlpack.toml`` from the current working directory if present.

    Returns:
        SqlPackConfig with all profiles.  An empty config when no default
        file exists.

    Raises:
        FileNotFoundError: If an explicit ``config_path`` does not exist.
        ConfigError: If the file is not valid TOML or a profile is invalid.
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILE_NAME
        if not config_path.exists():
            return SqlPackConfig()
    elif not config_path.exists():
        raise FileNotFoundError(f"sqlpack config not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        try:
            profiles[name] = ConnectionProfile(**profile_data)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid profile '{name}' in {config_path}: {e}") from e

    log_settings = None
    if "logging" in data:
        section = data["logging"]
        log_settings = LogSettings(
            level=LogLevel.parse(section.get("level")),
            timestamp=bool(section.get("timestamp", False)),
        )

    return SqlPackConfig(profiles=profiles, logging=log_settings)


def get_profile(
    config: SqlPackConfig,
    profile_name: str | None,
) -> ConnectionProfile | None:
    """Return the named profile, or ``None`` when no name is given.

    Raises:
        ProfileNotFoundError: If the name is not in the config.
    """
    if not profile_name:
        return None
    if profile_name not in config.profiles:
        available = ", ".join(config.profiles) or "(none)"
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found. Available: {available}"
        )
    return config.profiles[profile_name]


def resolve_log_settings(
    level: str | None = None,
    timestamp: bool | None = None,
    env_prefix: str = "",
    config: SqlPackConfig | None = None,
    default_level: LogLevel = LogLevel.ERROR,
    environ: Mapping[str, str] | None = None,
) -> LogSettings:
    """Build the process-wide LogSettings.

    Example:
        >>> resolve_log_settings(environ={"SQLPACK_LOG": "debug"}).level
        <LogLevel.DEBUG: 4>
    """
    file_settings = config.logging if config else None

    if level is None:
        level = env_value("SQLPACK_LOG", env_prefix, environ)
    if level is not None:
        resolved_level = LogLevel.parse(level)
    elif file_settings is not None:
        resolved_level = file_settings.level
    else:
        resolved_level = default_level

    if timestamp is None:
        raw = env_value("SQLPACK_LOG_TIMESTAMP", env_prefix, environ)
        if raw is not None:
            timestamp = parse_bool(raw)
        elif file_settings is not None:
            timestamp = file_settings.timestamp
        else:
            timestamp = False

    return LogSettings(level=resolved_level, timestamp=timestamp)


def resolve_connection(
    server: str | None = None,
    username: str | None = None,
    password: str | None = None,
    trust_server_certificate: bool | None = None,
    profile: ConnectionProfile | None = None,
    env_prefix: str = "",
    environ: Mapping[str, str] | None = None,
    default_server: str = DEFAULT_SERVER,
) -> ConnectionSettings:
    """Resolve connection settings from CLI, ``DB_*`` env vars and a profile."""

    def pick(cli_value, env_name, profile_value):
        if cli_value:
            return cli_value
        env = env_value(env_name, env_prefix, environ)
        if env is not None:
            return env
        return profile_value

    if not trust_server_certificate:
        raw = env_value("DB_TRUST_SERVER_CERTIFICATE", env_prefix, environ)
        if raw is not None:
            trust_server_certificate = parse_bool(raw)
        else:
            trust_server_certificate = bool(profile and profile.trust_server_certificate)

    return ConnectionSettings(
        server=pick(server, "DB_SERVER", profile.server if profile else None) or default_server,
        username=pick(username, "DB_USERNAME", profile.username if profile else None),
        password=pick(password, "DB_PASSWORD", profile.password if profile else None),
        trust_server_certificate=trust_server_certificate,
        odbc_driver=pick(None, "DB_ODBC_DRIVER", profile.odbc_driver if profile else None)
        or DEFAULT_ODBC_DRIVER,
    )


def resolve_database(
    database: str | None = None,
    profile: ConnectionProfile | None = None,
    env_prefix: str = "",
    environ: Mapping[str, str] | None = None,
) -> str:
    """Resolve the database name.

    Raises:
        ConfigError: If no database name is configured anywhere.
    """
    name = (
        database
        or env_value("DB_NAME", env_prefix, environ)
        or (profile.database if profile else None)
    )
    if not name:
        raise ConfigError(
            "Database name is required. Set DB_NAME environment variable "
            "or use --database option."
        )
    return name
