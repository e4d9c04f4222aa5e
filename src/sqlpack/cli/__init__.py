"""CLI module for SQL Server export and import.

Moves a database's schema and data between servers through a tar.gz
archive built from sqlcmd, bcp and SQLAlchemy schema scripting.

Usage:
    DB_SERVER=prod,1433 DB_NAME=Shop sqlpack export
    sqlpack --log-level info export -d Shop --row-limit 1000 --schema-only-tables AuditLog
    sqlpack export-data -d Shop --data-dir ./db-export/data --tables-file ./db-export/tables.txt
    sqlpack import -a db-dump.tar.gz -d ShopDev -u sa -p secret --force
    sqlpack --profile local import -a db-dump.tar.gz --skip-data
    sqlpack doctor

Commands:
    export       - Export schema and data and pack them into an archive
    export-data  - Export table data only (two-pass format/data files)
    import       - Import an archive into a target database
    doctor       - Check that the SQL Server tools are installed

Exit codes:
    export       0 archive written, 1 otherwise
    export-data  0 complete, 1 partial, 2 nothing exported
    import       0 success (possibly with warnings), 1 fatal
    doctor       0 all checks passed, 1 otherwise
"""

import argparse
import sys
from pathlib import Path

from rich.console import Console
from rich.text import Text

from sqlpack.clients import BcpClient, SqlAlchemyScripter, SqlCmdClient, create_source_engine
from sqlpack.config import (
    ConnectionProfile,
    ConnectionSettings,
    DataExportOptions,
    ExportOptions,
    ImportOptions,
    LogLevel,
    SqlPackConfig,
    env_value,
    get_profile,
    load_config,
    resolve_connection,
    resolve_database,
    resolve_log_settings,
)
from sqlpack.data import TableDataExporter
from sqlpack.doctor import run_doctor
from sqlpack.errors import ConfigError, SqlPackError
from sqlpack.export import export_database
from sqlpack.importer import ImportOrchestrator
from sqlpack.manifest import DATA_DIR, TABLE_MANIFEST, SchemaOnlySet
from sqlpack.supervisor import Supervisor

err_console = Console(stderr=True, highlight=False)

DEFAULT_EXPORT_DIR = "./db-export"
DEFAULT_ARCHIVE_NAME = "db-dump.tar.gz"


# ============================================================================
# Settings resolution (CLI-internal helpers)
# ============================================================================


def _load_context(
    args: argparse.Namespace,
    default_level: LogLevel = LogLevel.ERROR,
) -> tuple[SqlPackConfig, ConnectionProfile | None, Supervisor]:
    """Load sqlpack.toml, pick the profile and build the supervisor.

    Raises:
        ConfigError: If the config file is missing, invalid, or the
            profile does not exist.
    """
    env_prefix = getattr(args, "env_prefix", "")
    config_path = Path(args.config) if getattr(args, "config", None) else None
    try:
        config = load_config(config_path)
    except FileNotFoundError as e:
        raise ConfigError(str(e)) from e

    profile_name = getattr(args, "profile", None) or env_value("SQLPACK_PROFILE", env_prefix)
    profile = get_profile(config, profile_name)

    settings = resolve_log_settings(
        level=getattr(args, "log_level", None),
        timestamp=True if getattr(args, "log_timestamp", False) else None,
        env_prefix=env_prefix,
        config=config,
        default_level=default_level,
    )
    return config, profile, Supervisor(settings)


def _connection(args: argparse.Namespace, profile: ConnectionProfile | None) -> ConnectionSettings:
    return resolve_connection(
        server=args.server,
        username=args.username,
        password=args.password,
        trust_server_certificate=args.trust_server_certificate or None,
        profile=profile,
        env_prefix=args.env_prefix,
    )


def _option(cli_value, env_name: str, env_prefix: str, default: str) -> str:
    """CLI value > ``{env_prefix}{env_name}`` > default."""
    if cli_value not in (None, ""):
        return str(cli_value)
    return env_value(env_name, env_prefix) or default


def _row_limit(args: argparse.Namespace) -> int:
    raw = _option(args.row_limit, "DB_ROW_LIMIT", args.env_prefix, "0")
    try:
        limit = int(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid row limit: {raw}") from e
    if limit < 0:
        raise ConfigError(f"Invalid row limit: {raw}")
    return limit


# ============================================================================
# Command implementations
# ============================================================================


def cmd_export(args: argparse.Namespace) -> int:
    """Export schema and data, then pack the archive.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 when an archive was written, 1 otherwise.
    """
    _, profile, supervisor = _load_context(args)
    prefix = args.env_prefix
    connection = _connection(args, profile)
    options = ExportOptions(
        connection=connection,
        database=resolve_database(args.database, profile, prefix),
        output_dir=Path(_option(args.output_dir, "DB_EXPORT_DIR", prefix, DEFAULT_EXPORT_DIR)),
        archive_name=Path(_option(args.archive_name, "DB_ARCHIVE_NAME", prefix, DEFAULT_ARCHIVE_NAME)),
        row_limit=_row_limit(args),
        schema_only_tables=_option(args.schema_only_tables, "DB_SCHEMA_ONLY_TABLES", prefix, ""),
    )

    engine = create_source_engine(connection, options.database)
    try:
        result = export_database(
            options,
            supervisor,
            SqlAlchemyScripter(engine, options.database),
            BcpClient(connection, supervisor),
        )
    finally:
        engine.dispose()
    return result.exit_code


def cmd_export_data(args: argparse.Namespace) -> int:
    """Run the two-pass table data export on its own.

    Returns:
        The exporter's three-way code (0 complete, 1 partial, 2 failed).
    """
    _, profile, supervisor = _load_context(args)
    prefix = args.env_prefix
    export_dir = Path(_option(None, "DB_EXPORT_DIR", prefix, DEFAULT_EXPORT_DIR))
    options = DataExportOptions(
        connection=_connection(args, profile),
        database=resolve_database(args.database, profile, prefix),
        data_dir=Path(args.data_dir) if args.data_dir else export_dir / DATA_DIR,
        tables_file=Path(args.tables_file) if args.tables_file else export_dir / TABLE_MANIFEST,
        row_limit=_row_limit(args),
        schema_only_tables=_option(args.schema_only_tables, "DB_SCHEMA_ONLY_TABLES", prefix, ""),
    )

    exporter = TableDataExporter(BcpClient(options.connection, supervisor), supervisor)
    report = exporter.run(
        options.database,
        options.tables_file,
        options.data_dir,
        SchemaOnlySet.parse(options.schema_only_tables),
        row_limit=options.row_limit,
    )
    return report.outcome.exit_code


def cmd_import(args: argparse.Namespace) -> int:
    """Import an archive into the target database.

    Returns:
        0 on success (including success with warnings), 1 on fatal error.
    """
    _, profile, supervisor = _load_context(args)
    connection = _connection(args, profile)
    options = ImportOptions(
        connection=connection,
        database=resolve_database(args.database, profile, args.env_prefix),
        archive_path=Path(args.archive),
        work_dir=Path(args.work_dir),
        force=args.force,
        skip_data=args.skip_data,
        keep_work_dir=args.keep_work_dir,
    )

    orchestrator = ImportOrchestrator(
        options,
        SqlCmdClient(connection, supervisor),
        BcpClient(connection, supervisor),
        supervisor,
    )
    return orchestrator.run().exit_code


def cmd_doctor(args: argparse.Namespace) -> int:
    """Check tool availability.

    Returns:
        0 if all checks passed, 1 otherwise.
    """
    _, _, supervisor = _load_context(args, default_level=LogLevel.INFO)
    return run_doctor(supervisor)


# ============================================================================
# Argument parsing
# ============================================================================


def _add_connection_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--server", "-s", help="SQL Server instance (default: localhost,1433)")
    parser.add_argument("--database", "-d", help="Database name (or DB_NAME)")
    parser.add_argument(
        "--username",
        "-u",
        help="SQL Server username (trusted connection if not provided)",
    )
    parser.add_argument("--password", "-p", help="SQL Server password")
    parser.add_argument(
        "--trust-server-certificate",
        action="store_true",
        help="Trust the server certificate without validation",
    )


def _add_data_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--row-limit",
        "-L",
        type=int,
        help="Max rows per table (default: 0 = unlimited)",
    )
    parser.add_argument(
        "--schema-only-tables",
        help="Comma-separated tables to export without data (e.g., AuditLog,dbo.Sessions)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sqlpack",
        description="SQL Server schema and data export/import toolkit",
    )

    # Global options
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix CI_ reads CI_DB_SERVER)"
        ),
    )
    parser.add_argument(
        "--log-level",
        choices=["error", "warn", "info", "debug", "trace"],
        help="Log verbosity (default: error, or SQLPACK_LOG)",
    )
    parser.add_argument(
        "--log-timestamp",
        action="store_true",
        help="Prefix log lines with a timestamp",
    )
    parser.add_argument("--config", help="Path to sqlpack.toml (default: ./sqlpack.toml)")
    parser.add_argument("--profile", help="Connection profile from sqlpack.toml")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # export command
    p_export = subparsers.add_parser(
        "export",
        help="Export schema and data and pack them into an archive",
    )
    _add_connection_args(p_export)
    p_export.add_argument("--output-dir", "-o", help="Export directory (default: ./db-export)")
    p_export.add_argument(
        "--archive-name",
        "-a",
        help="Archive file name (default: db-dump.tar.gz)",
    )
    _add_data_args(p_export)
    p_export.set_defaults(func=cmd_export)

    # export-data command
    p_export_data = subparsers.add_parser(
        "export-data",
        help="Export table data only",
    )
    _add_connection_args(p_export_data)
    p_export_data.add_argument("--data-dir", help="Directory for .fmt/.dat files")
    p_export_data.add_argument("--tables-file", help="Table manifest (Database.Schema.Table per line)")
    _add_data_args(p_export_data)
    p_export_data.set_defaults(func=cmd_export_data)

    # import command
    p_import = subparsers.add_parser(
        "import",
        help="Import an archive into a target database",
    )
    p_import.add_argument("--archive", "-a", required=True, help="Path to db-dump.tar.gz (or .zip)")
    _add_connection_args(p_import)
    p_import.add_argument(
        "--work-dir",
        "-w",
        default="./db-import-work",
        help="Working directory for extraction (default: ./db-import-work)",
    )
    p_import.add_argument(
        "--force",
        "-f",
        action="store_true",
        help="Drop and recreate the database if it exists",
    )
    p_import.add_argument(
        "--skip-data",
        action="store_true",
        help="Import schema only, skip data import",
    )
    p_import.add_argument(
        "--keep-work-dir",
        action="store_true",
        help="Keep the extracted files after the import (debugging)",
    )
    p_import.set_defaults(func=cmd_import)

    # doctor command
    p_doctor = subparsers.add_parser(
        "doctor",
        help="Check that sqlcmd, bcp and an ODBC driver are installed",
    )
    p_doctor.set_defaults(func=cmd_doctor)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except SqlPackError as e:
        err_console.print(Text(f"✗ [ERROR] {e}", style="red"))
        return 1


if __name__ == "__main__":
    sys.exit(main())
