"""Import orchestrator: archive -> target database.

State machine over one target database::

    DISCONNECTED -> CONNECTED -> ARCHIVE_EXTRACTED -> DATABASE_RESOLVED
        -> SCHEMA_APPLIED -> DATA_LOADED -> CLEANED_UP

Fatal conditions (server unreachable, target exists without force,
archive missing or unreadable, manifests missing, database create/drop
failing) stop the run with ``ImportOutcome.FATAL``.  Every check that can
abort happens before the target database is touched.

Per-item problems (one schema file, one schema, one table) are logged and
counted; the run continues and finishes as ``SUCCESS_WITH_WARNINGS``.

The working directory this run extracted into is removed at the end
unless ``keep_work_dir`` is set.

Usage:
    orchestrator = ImportOrchestrator(options, sqlcmd_client, bcp_client, supervisor)
    report = orchestrator.run()
    sys.exit(report.exit_code)
"""

import re
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from sqlpack.archive import archive_kind, unpack_archive
from sqlpack.clients.base import BulkCopyClient, SqlClient
from sqlpack.config.models import ImportOptions, LogLevel
from sqlpack.errors import (
    ArchiveNotFoundError,
    ConfigError,
    ConnectionFailedError,
    DatabaseBusyError,
    DatabaseCommandError,
    DatabaseExistsError,
    ManifestError,
    SqlPackError,
)
from sqlpack.manifest.io import (
    DATA_DIR,
    SCHEMA_DIR,
    SCHEMA_MANIFEST,
    TABLE_MANIFEST,
    read_schema_manifest,
    read_table_manifest,
)
from sqlpack.manifest.models import (
    DataCounters,
    ImportOutcome,
    InvalidLine,
    ParsedTable,
    SchemaApplyOutcome,
    SchemaApplyResult,
    SchemaUnit,
    TableDataPair,
    ValidTable,
    quote_literal,
    quote_name,
)
from sqlpack.supervisor import Supervisor

DEFAULT_SCHEMA = "dbo"

_USE_STATEMENT = re.compile(r"^\s*USE\s+(\[[^\]]*\]|\S+)\s*;?\s*$", re.IGNORECASE)


class ImportState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    ARCHIVE_EXTRACTED = "archive_extracted"
    DATABASE_RESOLVED = "database_resolved"
    SCHEMA_APPLIED = "schema_applied"
    DATA_LOADED = "data_loaded"
    CLEANED_UP = "cleaned_up"


@dataclass
class ExtractedTree:
    """Paths inside an unpacked export archive."""

    root: Path

    @property
    def tables_file(self) -> Path:
        return self.root / TABLE_MANIFEST

    @property
    def schema_manifest(self) -> Path:
        return self.root / SCHEMA_MANIFEST

    @property
    def schema_dir(self) -> Path:
        return self.root / SCHEMA_DIR

    @property
    def data_dir(self) -> Path:
        return self.root / DATA_DIR


@dataclass
class ImportReport:
    """Everything one import run did."""

    outcome: ImportOutcome = ImportOutcome.SUCCESS
    states: list[ImportState] = field(default_factory=list)
    schema_results: list[SchemaApplyResult] = field(default_factory=list)
    schemas_failed: list[str] = field(default_factory=list)
    data: DataCounters = field(default_factory=DataCounters)
    data_skipped: bool = False
    error: str | None = None

    @property
    def exit_code(self) -> int:
        return self.outcome.exit_code

    @property
    def has_warnings(self) -> bool:
        return (
            bool(self.schemas_failed)
            or self.data.failed > 0
            or any(r.outcome is not SchemaApplyOutcome.CLEAN for r in self.schema_results)
        )


def retarget_script(source: Path, destination: Path) -> Path:
    """Copy a schema script without its ``USE [database]`` lines.

    Scripts are applied with the target database as the connection's
    database, so any database switch in the file must go.
    """
    text = source.read_text(encoding="utf-8-sig")
    kept = [line for line in text.splitlines() if not _USE_STATEMENT.match(line)]
    destination.write_text("\n".join(kept) + "\n", encoding="utf-8")
    return destination


class ImportOrchestrator:
    """Imports one archive into one target database.

    Args:
        options: Import run options (target, archive, flags).
        sql_client: T-SQL collaborator (sqlcmd).
        bulk_client: Bulk load collaborator (bcp).
        supervisor: Logger and command runner.
    """

    def __init__(
        self,
        options: ImportOptions,
        sql_client: SqlClient,
        bulk_client: BulkCopyClient,
        supervisor: Supervisor,
    ):
        self.options = options
        self.sql_client = sql_client
        self.bulk_client = bulk_client
        self.supervisor = supervisor
        self.state = ImportState.DISCONNECTED
        self._owns_work_dir = False

    @property
    def database(self) -> str:
        return self.options.database

    def _enter(self, state: ImportState, report: ImportReport) -> None:
        self.supervisor.trace(f"State: {self.state.value} -> {state.value}")
        self.state = state
        report.states.append(state)

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def run(self) -> ImportReport:
        """Run the whole import; never raises for expected failures."""
        log = self.supervisor
        report = ImportReport(states=[self.state])

        try:
            self._check_archive()
            self._connect()
            self._enter(ImportState.CONNECTED, report)

            tree = self._extract()
            tables = read_table_manifest(tree.tables_file)
            units = read_schema_manifest(tree.schema_manifest)
            self._enter(ImportState.ARCHIVE_EXTRACTED, report)

            self._resolve_database()
            self._enter(ImportState.DATABASE_RESOLVED, report)

            self._create_schemas(tables, report)
            self._apply_schema_files(tree, units, report)
            self._enter(ImportState.SCHEMA_APPLIED, report)

            if self.options.skip_data:
                log.info("Skipping data import (--skip-data specified)")
                report.data_skipped = True
            else:
                self._load_data(tables, tree, report)
            self._enter(ImportState.DATA_LOADED, report)
        except SqlPackError as e:
            report.outcome = ImportOutcome.FATAL
            report.error = str(e)
            log.error(str(e))
        finally:
            self._cleanup()
            self._enter(ImportState.CLEANED_UP, report)

        if report.outcome is not ImportOutcome.FATAL and report.has_warnings:
            report.outcome = ImportOutcome.SUCCESS_WITH_WARNINGS

        self._summarize(report)
        return report

    # ------------------------------------------------------------------
    # Connection and archive
    # ------------------------------------------------------------------

    def _check_archive(self) -> None:
        path = self.options.archive_path
        if not path.is_file():
            raise ArchiveNotFoundError(f"Archive file not found: {path}")
        archive_kind(path)

    def _connect(self) -> None:
        log = self.supervisor
        log.section("TESTING CONNECTION")
        if self.options.connection.uses_trusted_connection:
            log.info("Using trusted connection")
        else:
            log.info("Using SQL Server authentication")

        result = self.sql_client.probe()
        if not result.ok:
            detail = result.output_text.strip().splitlines()
            reason = detail[-1] if detail else f"exit code {result.exit_code}"
            raise ConnectionFailedError(
                f"Failed to connect to SQL Server {self.options.connection.server}: {reason}"
            )
        log.success(f"Connected to SQL Server: {self.options.connection.server}")

    def _extract(self) -> ExtractedTree:
        log = self.supervisor
        work_dir = self.options.work_dir
        log.section("EXTRACTING ARCHIVE")

        if work_dir.exists() and not work_dir.is_dir():
            raise ConfigError(f"Working directory is not a directory: {work_dir}")
        self._owns_work_dir = True
        if work_dir.exists():
            shutil.rmtree(work_dir)
        log.info(f"Extracting {self.options.archive_path} to {work_dir}")
        unpack_archive(self.options.archive_path, work_dir)
        log.success("Archive extracted")

        tree = ExtractedTree(root=work_dir)
        if not tree.tables_file.is_file():
            raise ManifestError(f"Tables file not found: {tree.tables_file}")
        if not tree.schema_manifest.is_file():
            raise ManifestError(f"Schema manifest not found: {tree.schema_manifest}")
        if not self.options.skip_data and not tree.data_dir.is_dir():
            raise ManifestError(f"Data directory not found: {tree.data_dir}")
        log.success("All required files found")
        return tree

    # ------------------------------------------------------------------
    # Database resolution
    # ------------------------------------------------------------------

    def _database_exists(self) -> bool:
        value = self.sql_client.query_scalar(
            f"SELECT COUNT(*) FROM sys.databases WHERE name = {quote_literal(self.database)}"
        )
        if value is None or not value.isdigit():
            raise DatabaseCommandError(
                f"Could not determine whether database '{self.database}' exists"
            )
        return int(value) > 0

    def _resolve_database(self) -> None:
        log = self.supervisor
        log.section("CHECKING DATABASE")

        if self._database_exists():
            if not self.options.force:
                raise DatabaseExistsError(
                    f"Database '{self.database}' already exists. "
                    "Use -f/--force to recreate it."
                )
            log.warn(f"Database '{self.database}' exists. Dropping and recreating...")
            self._drop_with_retry()
            log.success("Database dropped")

        log.info(f"Creating database: {self.database}")
        result = self.sql_client.execute_sql(
            f"Create database {self.database}",
            f"CREATE DATABASE {quote_name(self.database)}",
            log_file=self.options.work_dir / "create_database.log",
        )
        if not result.ok:
            self.supervisor.show_tail(result.log_file, 10)
            raise DatabaseCommandError(f"Failed to create database '{self.database}'")
        log.success("Database created")

    def _drop_with_retry(self) -> None:
        retryer = Retrying(
            stop=stop_after_attempt(max(1, self.options.drop_attempts)),
            wait=wait_fixed(self.options.drop_wait_seconds),
            retry=retry_if_exception_type(DatabaseBusyError),
            before_sleep=self._log_drop_retry,
            reraise=True,
        )
        retryer(self._drop_database)

    def _log_drop_retry(self, retry_state: RetryCallState) -> None:
        self.supervisor.warn(
            f"Retrying drop of '{self.database}' (attempt {retry_state.attempt_number}): "
            f"{retry_state.outcome.exception()}"
        )

    def _drop_database(self) -> None:
        name = quote_name(self.database)
        sql = (
            f"IF EXISTS (SELECT name FROM sys.databases WHERE name = {quote_literal(self.database)})\n"
            "BEGIN\n"
            f"    ALTER DATABASE {name} SET SINGLE_USER WITH ROLLBACK IMMEDIATE;\n"
            f"    DROP DATABASE {name};\n"
            "END"
        )
        result = self.sql_client.execute_sql(
            f"Drop database {self.database}",
            sql,
            log_file=self.options.work_dir / "drop_database.log",
        )
        if not result.ok:
            lines = result.output_text.strip().splitlines()
            raise DatabaseBusyError(
                f"Failed to drop database '{self.database}'"
                + (f": {lines[-1]}" if lines else "")
            )

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _create_schemas(self, tables: list[ParsedTable], report: ImportReport) -> None:
        log = self.supervisor
        log.section("CREATING SCHEMAS")

        names: dict[str, str] = {}
        for entry in tables:
            if isinstance(entry, ValidTable):
                names.setdefault(entry.table.schema.casefold(), entry.table.schema)
        names.pop(DEFAULT_SCHEMA, None)

        for schema in sorted(names.values()):
            create = f"CREATE SCHEMA {quote_name(schema)}"
            sql = f"IF SCHEMA_ID({quote_literal(schema)}) IS NULL EXEC({quote_literal(create)})"
            result = self.sql_client.execute_sql(
                f"Create schema {schema}", sql, database=self.database
            )
            if result.ok:
                log.success(f"Schema ready: {schema}")
            else:
                log.warn(f"Could not create schema {schema} (continuing)")
                report.schemas_failed.append(schema)

    def _apply_schema_files(
        self,
        tree: ExtractedTree,
        units: list[SchemaUnit],
        report: ImportReport,
    ) -> None:
        log = self.supervisor
        log.section("IMPORTING SCHEMA")

        for unit in units:
            source = tree.schema_dir / unit.file_name
            stem = Path(unit.file_name).stem
            log_file = tree.root / f"schema_{stem}.log"

            if not source.is_file():
                log.error(f"Schema file listed in manifest not found: {unit.file_name}")
                report.schema_results.append(
                    SchemaApplyResult(unit=unit, outcome=SchemaApplyOutcome.FATAL, detail="missing")
                )
                continue

            log.info(f"Executing {unit.file_name}...")
            try:
                script = retarget_script(source, tree.root / f"{stem}.target.sql")
            except (UnicodeDecodeError, OSError) as e:
                log.error(f"{unit.file_name} could not be read: {e}")
                report.schema_results.append(
                    SchemaApplyResult(unit=unit, outcome=SchemaApplyOutcome.FATAL, detail=str(e))
                )
                continue
            result = self.sql_client.run_script(
                f"Apply {unit.file_name}", script, self.database, log_file
            )
            outcome = SchemaApplyOutcome.from_exit_code(result.exit_code)
            report.schema_results.append(
                SchemaApplyResult(unit=unit, outcome=outcome, log_file=log_file)
            )

            if outcome is SchemaApplyOutcome.CLEAN:
                log.success(f"{unit.file_name} applied")
            elif outcome is SchemaApplyOutcome.WARNINGS:
                log.warn(f"{unit.file_name} applied with warnings. Check log: {log_file}")
                if log.enabled(LogLevel.WARN):
                    log.show_tail(log_file, 10)
            else:
                log.error(f"{unit.file_name} failed. Check log: {log_file}")
                log.show_tail(log_file, 20)

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def _load_data(
        self,
        tables: list[ParsedTable],
        tree: ExtractedTree,
        report: ImportReport,
    ) -> None:
        log = self.supervisor
        counters = report.data
        log.section("IMPORTING DATA")

        for entry in tables:
            if isinstance(entry, InvalidLine):
                log.warn(f"Invalid table format: {entry.raw}")
                counters.failed += 1
                continue

            table = entry.table
            pair = TableDataPair.in_dir(table, tree.data_dir)
            if not pair.has_data:
                log.warn(f"Data file not found: {pair.data_file}")
                counters.failed += 1
                continue
            if not pair.has_format:
                log.warn(f"Format file not found for {table.qualified}, skipping")
                counters.failed += 1
                continue
            if pair.is_empty:
                log.success(f"{table.qualified} (no rows)")
                counters.imported += 1
                continue

            log.info(f"Importing data: {table.qualified}")
            log_file = tree.root / f"import_{table.schema}_{table.table}.log"
            result = self.bulk_client.import_data(
                table, self.database, pair.data_file, pair.format_file, log_file
            )
            if result.ok:
                log.success(table.qualified)
                counters.imported += 1
            else:
                log.warn(f"✗ Failed: {table.qualified}")
                log.show_tail(log_file, 5)
                counters.failed += 1

    # ------------------------------------------------------------------
    # Cleanup and summary
    # ------------------------------------------------------------------

    def _cleanup(self) -> None:
        log = self.supervisor
        work_dir = self.options.work_dir
        if not self._owns_work_dir or not work_dir.exists():
            return
        if self.options.keep_work_dir:
            log.info(f"Keeping working directory: {work_dir}")
            return
        log.section("CLEANING UP")
        log.info(f"Removing working directory: {work_dir}")
        shutil.rmtree(work_dir, ignore_errors=True)
        log.success("Cleanup complete")

    def _summarize(self, report: ImportReport) -> None:
        log = self.supervisor
        conn = self.options.connection

        if report.outcome is ImportOutcome.FATAL:
            log.summary(f"✗ Import of '{self.database}' failed: {report.error}", style="red")
            return

        log.summary("")
        log.summary("=== IMPORT SUMMARY ===", style="bold")
        applied = sum(1 for r in report.schema_results if r.outcome.succeeded)
        log.summary(f"Schema files applied: {applied}/{len(report.schema_results)}")
        warned = [r.unit.file_name for r in report.schema_results if r.outcome is SchemaApplyOutcome.WARNINGS]
        failed = [r.unit.file_name for r in report.schema_results if r.outcome is SchemaApplyOutcome.FATAL]
        if warned:
            log.summary(f"Schema files with warnings: {', '.join(warned)}", style="yellow")
        if failed:
            log.summary(f"Schema files failed: {', '.join(failed)}", style="yellow")
        if report.schemas_failed:
            log.summary(f"Schemas not created: {', '.join(report.schemas_failed)}", style="yellow")

        if report.data_skipped:
            log.summary("Data import skipped")
        else:
            log.summary(f"Tables imported: {report.data.imported}")
            log.summary(
                f"Tables failed: {report.data.failed}",
                style="yellow" if report.data.failed else "",
            )

        if report.outcome is ImportOutcome.SUCCESS:
            log.summary(f"✓ Database '{self.database}' has been successfully imported!", style="green")
        else:
            log.summary(f"⚠ Database '{self.database}' imported with warnings", style="yellow")

        log.info(f"Connection string: Server={conn.server};Database={self.database}")
        auth = "-E" if conn.uses_trusted_connection else f"-U {conn.username}"
        log.info(f"You can now connect using: sqlcmd -S {conn.server} {auth} -d {self.database}")
