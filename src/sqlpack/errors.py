"""Exception hierarchy for sqlpack.

Fatal conditions raise one of these.  Per-item failures (one table, one
schema file) never raise -- they are counted and logged inside the loop
that produced them.
"""


class SqlPackError(Exception):
    """Base class for all sqlpack errors."""

    pass


class ConfigError(SqlPackError):
    """Raised when configuration is missing or invalid."""

    pass


class ProfileNotFoundError(ConfigError):
    """Raised when a named profile does not exist in sqlpack.toml."""

    pass


class ToolNotFoundError(SqlPackError):
    """Raised when an external executable (sqlcmd, bcp) is not on PATH."""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(
            f"{tool} not found. Please install SQL Server command line tools."
        )


class ManifestError(SqlPackError):
    """Raised when a required manifest file or directory is missing."""

    pass


class ArchiveNotFoundError(SqlPackError):
    """Raised when the archive to import does not exist."""

    pass


class UnsupportedArchiveError(SqlPackError):
    """Raised when an archive cannot be read (unknown extension or corrupt)."""

    pass


class ConnectionFailedError(SqlPackError):
    """Raised when the connectivity probe against the server fails."""

    pass


class DatabaseExistsError(SqlPackError):
    """Raised when the target database exists and force was not given."""

    pass


class DatabaseCommandError(SqlPackError):
    """Raised when a database-level command (create/drop) fails."""

    pass


class DatabaseBusyError(DatabaseCommandError):
    """Raised when dropping the target database fails (retried)."""

    pass


class GuardTransformError(SqlPackError):
    """Raised when the table guard transform cannot parse a batch."""

    pass
