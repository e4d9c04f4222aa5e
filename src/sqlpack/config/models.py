"""Pydantic models for sqlpack configuration."""

from enum import IntEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr


# ============================================================================
# Logging
# ============================================================================


class LogLevel(IntEnum):
    """Verbosity levels, ordered from quietest to loudest.

    A message at level ``L`` is emitted when the configured level is
    numerically ``>= L``.
    """

    ERROR = 1
    WARN = 2
    INFO = 3
    DEBUG = 4
    TRACE = 5

    @classmethod
    def parse(cls, value: "str | int | LogLevel | None") -> "LogLevel":
        """Parse ``error|warn|info|debug|trace`` (any case).

        Unknown or empty values fall back to ``ERROR``.

        Example:
            >>> LogLevel.parse("Debug")
            <LogLevel.DEBUG: 4>
            >>> LogLevel.parse("chatty")
            <LogLevel.ERROR: 1>
        """
        if isinstance(value, LogLevel):
            return value
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                return cls.ERROR
        if not value:
            return cls.ERROR
        name = value.strip().upper()
        if name == "WARNING":
            name = "WARN"
        return cls.__members__.get(name, cls.ERROR)


class LogSettings(BaseModel):
    """Process-wide logging configuration.

    Built once at start-up and never mutated afterwards.
    """

    model_config = ConfigDict(frozen=True)

    level: LogLevel = LogLevel.ERROR
    timestamp: bool = False


# ============================================================================
# Connection / profiles
# ============================================================================


DEFAULT_SERVER = "localhost,1433"
DEFAULT_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"


class ConnectionSettings(BaseModel):
    """How to reach a SQL Server instance."""

    model_config = ConfigDict(frozen=True)

    server: str = DEFAULT_SERVER
    username: str | None = None
    password: SecretStr | None = None
    trust_server_certificate: bool = False
    odbc_driver: str = DEFAULT_ODBC_DRIVER

    @property
    def uses_trusted_connection(self) -> bool:
        """True when no username/password pair is configured."""
        return not (self.username and self.password and self.password.get_secret_value())

    @property
    def host_and_port(self) -> tuple[str, int | None]:
        """Split ``host,port`` (sqlcmd style) into its parts."""
        host, _, port = self.server.partition(",")
        if port.strip().isdigit():
            return host.strip(), int(port)
        return host.strip(), None


class ConnectionProfile(BaseModel):
    """Connection profile from sqlpack.toml."""

    server: str = DEFAULT_SERVER
    database: str | None = None
    username: str | None = None
    password: str | None = None
    trust_server_certificate: bool = False
    odbc_driver: str | None = None
    description: str = ""


class SqlPackConfig(BaseModel):
    """Complete configuration from sqlpack.toml."""

    profiles: dict[str, ConnectionProfile] = Field(default_factory=dict)
    logging: LogSettings | None = None  # None when [logging] is absent


# ============================================================================
# Run options
# ============================================================================


class ExportOptions(BaseModel):
    """Options for one export run."""

    connection: ConnectionSettings
    database: str
    output_dir: Path = Path("./db-export")
    archive_name: Path = Path("db-dump.tar.gz")
    row_limit: int = 0
    schema_only_tables: str = ""


class DataExportOptions(BaseModel):
    """Options for a standalone data export (``sqlpack export-data``)."""

    connection: ConnectionSettings
    database: str
    data_dir: Path
    tables_file: Path
    row_limit: int = 0
    schema_only_tables: str = ""


class ImportOptions(BaseModel):
    """Options for one import run."""

    connection: ConnectionSettings
    database: str
    archive_path: Path
    work_dir: Path = Path("./db-import-work")
    force: bool = False
    skip_data: bool = False
    keep_work_dir: bool = False
    drop_attempts: int = 3
    drop_wait_seconds: float = 2.0
