"""Configuration management: log settings, connections, profiles, run options.

Usage:
    >>> from sqlpack.config import load_config, resolve_log_settings, LogLevel
"""

from sqlpack.config.loader import (
    CONFIG_FILE_NAME,
    env_value,
    get_profile,
    load_config,
    resolve_connection,
    resolve_database,
    resolve_log_settings,
)
from sqlpack.config.models import (
    ConnectionProfile,
    ConnectionSettings,
    DataExportOptions,
    ExportOptions,
    ImportOptions,
    LogLevel,
    LogSettings,
    SqlPackConfig,
)

__all__ = [
    "CONFIG_FILE_NAME",
    "env_value",
    "load_config",
    "get_profile",
    "resolve_connection",
    "resolve_database",
    "resolve_log_settings",
    "ConnectionProfile",
    "ConnectionSettings",
    "DataExportOptions",
    "ExportOptions",
    "ImportOptions",
    "LogLevel",
    "LogSettings",
    "SqlPackConfig",
]
