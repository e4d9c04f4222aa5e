"""sqlpack: SQL Server schema and data export/import through a portable archive.

Exports a database's schema (per-category T-SQL scripts in dependency
order) and data (bcp native format/data file pairs) into a tar.gz, and
imports such an archive into another server.

Usage:
    from sqlpack import export_database, ImportOrchestrator, Supervisor
    from sqlpack import ExportOptions, ImportOptions, LogSettings, LogLevel
    from sqlpack import SqlCmdClient, BcpClient, SqlAlchemyScripter
"""

__version__ = "0.1.0"

# Clients
from sqlpack.clients import BcpClient, SqlAlchemyScripter, SqlCmdClient, create_source_engine

# Config
from sqlpack.config import (
    ConnectionSettings,
    ExportOptions,
    ImportOptions,
    LogLevel,
    LogSettings,
    load_config,
)

# Pipelines
from sqlpack.data import TableDataExporter
from sqlpack.export import ExportResult, export_database
from sqlpack.importer import ImportOrchestrator, ImportReport
from sqlpack.schema import SchemaExportPlanner

# Manifest / outcomes
from sqlpack.manifest import ExportOutcome, ImportOutcome, SchemaOnlySet, TableIdentifier

# Supervisor
from sqlpack.supervisor import Supervisor

# Errors
from sqlpack.errors import SqlPackError

__all__ = [
    # Clients
    "SqlCmdClient",
    "BcpClient",
    "SqlAlchemyScripter",
    "create_source_engine",
    # Config
    "ConnectionSettings",
    "ExportOptions",
    "ImportOptions",
    "LogLevel",
    "LogSettings",
    "load_config",
    # Pipelines
    "TableDataExporter",
    "SchemaExportPlanner",
    "export_database",
    "ExportResult",
    "ImportOrchestrator",
    "ImportReport",
    # Manifest / outcomes
    "ExportOutcome",
    "ImportOutcome",
    "SchemaOnlySet",
    "TableIdentifier",
    # Supervisor
    "Supervisor",
    # Errors
    "SqlPackError",
]
