"""Collaborator protocol definitions.

The pipelines talk to three external services through these Protocols:

- ``SqlClient``: runs T-SQL (sqlcmd).
- ``BulkCopyClient``: writes format files and moves table data (bcp).
- ``ObjectScripter``: returns object definitions per category.

Tests substitute in-memory fakes; production code uses ``SqlCmdClient``,
``BcpClient`` and ``SqlAlchemyScripter``.

Usage:
    from sqlpack.clients.base import SqlClient

    def database_exists(client: SqlClient, name: str) -> bool:
        return client.query_scalar(f"SELECT DB_ID(N'{name}')") not in (None, "NULL")
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel

from sqlpack.manifest.models import ObjectCategory, TableIdentifier
from sqlpack.supervisor.process import ExecutionResult


class SqlClient(Protocol):
    """T-SQL execution against one server."""

    def probe(self) -> ExecutionResult:
        """Run a trivial query to prove the server is reachable.

        Returns:
            ExecutionResult; ``ok`` is False when the server is unreachable
            or the credentials are rejected (the tool output says which).
        """
        ...

    def query_scalar(self, sql: str, database: str | None = None) -> str | None:
        """Run a query and return the first non-empty output line.

        Args:
            sql: Query returning a single value.
            database: Optional database context.

        Returns:
            The value as text, or ``None`` when the query failed or
            returned nothing.
        """
        ...

    def execute_sql(
        self,
        description: str,
        sql: str,
        database: str | None = None,
        log_file: Path | None = None,
    ) -> ExecutionResult:
        """Execute a batch that returns no rows (DDL, DROP, CREATE)."""
        ...

    def run_script(
        self,
        description: str,
        script: Path,
        database: str,
        log_file: Path | None = None,
    ) -> ExecutionResult:
        """Apply a script file.

        The exit code follows the wrapper convention: ``0`` clean,
        ``1`` failed, ``2`` executed but the tool printed messages.
        """
        ...


class BulkCopyClient(Protocol):
    """Bulk table data transfer."""

    def generate_format(
        self,
        table: TableIdentifier,
        database: str,
        format_file: Path,
        log_file: Path | None = None,
    ) -> ExecutionResult:
        """Write the native-format descriptor for ``table``."""
        ...

    def export_data(
        self,
        table: TableIdentifier,
        database: str,
        data_file: Path,
        format_file: Path,
        log_file: Path | None = None,
        row_limit: int = 0,
    ) -> ExecutionResult:
        """Export rows using an existing descriptor; ``row_limit=0`` is unbounded."""
        ...

    def import_data(
        self,
        table: TableIdentifier,
        database: str,
        data_file: Path,
        format_file: Path,
        log_file: Path | None = None,
    ) -> ExecutionResult:
        """Load a payload into ``table`` using its paired descriptor."""
        ...


class ScriptingOptions(BaseModel):
    """What a category script should contain."""

    schema_only: bool = True
    include_indexes: bool = False
    include_headers: bool = False
    foreign_keys: bool = False
    checks: bool = False
    triggers: bool = False
    primary_keys: bool = True


# Tables and views: definitions with indexes and object headers
TABLE_OPTIONS = ScriptingOptions(include_indexes=True, include_headers=True)

# Constraints: everything that must come after all tables exist.
# Primary keys stay with their tables.
CONSTRAINT_OPTIONS = ScriptingOptions(
    foreign_keys=True,
    checks=True,
    triggers=True,
    primary_keys=False,
)

# Procedures and functions are scripted as stored
MODULE_OPTIONS = ScriptingOptions()

CATEGORY_OPTIONS: dict[ObjectCategory, ScriptingOptions] = {
    ObjectCategory.TABLES: TABLE_OPTIONS,
    ObjectCategory.CONSTRAINTS: CONSTRAINT_OPTIONS,
    ObjectCategory.PROCEDURES: MODULE_OPTIONS,
    ObjectCategory.FUNCTIONS: MODULE_OPTIONS,
    ObjectCategory.VIEWS: TABLE_OPTIONS,
}


@dataclass(frozen=True)
class ScriptedObject:
    """One object definition returned by the scripter."""

    category: ObjectCategory
    schema: str
    name: str
    definition: str
    object_type: str = ""


class ObjectScripter(Protocol):
    """Source of schema object definitions for one database."""

    def list_tables(self) -> list[TableIdentifier]:
        """All user tables, ordered by schema then name."""
        ...

    def script(
        self,
        category: ObjectCategory,
        options: ScriptingOptions,
    ) -> list[ScriptedObject]:
        """Definitions for every object in ``category``, in creation order."""
        ...
