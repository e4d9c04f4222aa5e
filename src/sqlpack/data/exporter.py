"""Two-pass table data export.

Pass 1 writes a native-format descriptor (``Schema.Table.fmt``) for every
table in the manifest and an empty ``Schema.Table.dat`` placeholder next
to it.  Pass 2 drops schema-only tables and exports rows for the rest,
always through the descriptor written in pass 1.  A table whose descriptor
is missing is skipped and counted as failed -- a descriptor is never
invented in pass 2.

The run's ``ExportOutcome`` is three-way:

- ``COMPLETE`` (0): no failures in either pass.
- ``PARTIAL`` (1): some failures, but at least one artifact succeeded.
- ``FAILED`` (2): nothing succeeded.

Usage:
    exporter = TableDataExporter(bcp_client, supervisor)
    report = exporter.run("Shop", Path("out/tables.txt"), Path("out/data"),
                          SchemaOnlySet.parse("AuditLog"))
    report.outcome   # ExportOutcome.COMPLETE
"""

from pathlib import Path

from sqlpack.clients.base import BulkCopyClient
from sqlpack.errors import ManifestError
from sqlpack.manifest.io import read_table_manifest
from sqlpack.manifest.models import (
    DataExportReport,
    ExportOutcome,
    InvalidLine,
    ParsedTable,
    SchemaOnlySet,
    TableDataPair,
    ValidTable,
)
from sqlpack.supervisor import Supervisor


class TableDataExporter:
    """Exports table data as paired ``.fmt`` / ``.dat`` files."""

    def __init__(self, bulk_client: BulkCopyClient, supervisor: Supervisor):
        self.bulk_client = bulk_client
        self.supervisor = supervisor

    def run(
        self,
        database: str,
        tables_file: Path,
        data_dir: Path,
        schema_only: SchemaOnlySet | None = None,
        row_limit: int = 0,
    ) -> DataExportReport:
        """Run both passes over the table manifest.

        Args:
            database: Source database name (overrides the manifest's
                database component).
            tables_file: Table manifest.
            data_dir: Existing directory receiving ``.fmt``/``.dat`` files.
            schema_only: Tables whose rows are not exported.
            row_limit: Maximum rows per table; ``0`` for no limit.

        Returns:
            DataExportReport with fresh counters for this run.

        Raises:
            ManifestError: If the tables file is missing or not UTF-8, or the
                data directory is missing.
        """
        log = self.supervisor
        schema_only = schema_only or SchemaOnlySet()

        if not data_dir.is_dir():
            raise ManifestError(f"Data directory not found: {data_dir}")
        entries = read_table_manifest(tables_file)

        log.info("Starting BCP export process...")
        log.info(f"Database: {database}")
        log.info(f"Data directory: {data_dir}")
        log.info(f"Tables file: {tables_file}")
        if schema_only:
            log.debug(f"Schema-only tables: {schema_only}")

        report = DataExportReport()
        self._generate_formats(entries, database, data_dir, report)
        self._export_data(entries, database, data_dir, schema_only, row_limit, report)
        self._summarize(report)
        return report

    # ------------------------------------------------------------------
    # Pass 1
    # ------------------------------------------------------------------

    def _generate_formats(
        self,
        entries: list[ParsedTable],
        database: str,
        data_dir: Path,
        report: DataExportReport,
    ) -> None:
        log = self.supervisor
        counters = report.formats
        log.section("GENERATING FORMAT FILES")

        for entry in entries:
            if isinstance(entry, InvalidLine):
                log.warn(f"Invalid table format: {entry.raw}")
                counters.failed += 1
                continue

            table = entry.table
            pair = TableDataPair.in_dir(table, data_dir)
            log_file = pair.log_file("format")
            log.debug(f"Creating format file: {table.format_file_name}")

            result = self.bulk_client.generate_format(
                table, database, pair.format_file, log_file
            )
            if result.ok:
                pair.data_file.touch()
                log.debug(f"Created: {table.format_file_name} (+ empty {table.data_file_name})")
                counters.created += 1
            else:
                # A half-written descriptor must not be picked up by pass 2
                pair.format_file.unlink(missing_ok=True)
                log.warn(f"Failed to create format file for: {table.in_database(database)}")
                log.show_tail(log_file, 5)
                counters.failed += 1

        log.info("")
        log.info(f"Format files created: {counters.created}")
        log.info(f"Format files failed: {counters.failed}")

    # ------------------------------------------------------------------
    # Pass 2
    # ------------------------------------------------------------------

    def _export_data(
        self,
        entries: list[ParsedTable],
        database: str,
        data_dir: Path,
        schema_only: SchemaOnlySet,
        row_limit: int,
        report: DataExportReport,
    ) -> None:
        log = self.supervisor
        counters = report.data
        log.section("EXPORTING DATA")

        remaining = [
            e for e in entries
            if not (isinstance(e, ValidTable) and e.table in schema_only)
        ]
        skipped = len(entries) - len(remaining)
        if skipped:
            log.info(f"Skipping data for {skipped} schema-only table(s)")

        for entry in remaining:
            if isinstance(entry, InvalidLine):
                log.warn(f"Invalid table format: {entry.raw}")
                counters.failed += 1
                continue

            table = entry.table
            pair = TableDataPair.in_dir(table, data_dir)
            if not pair.has_format:
                log.warn(f"Format file not found for {table.in_database(database)}, skipping")
                counters.failed += 1
                continue

            log.debug(f"Exporting data: {table.in_database(database)}")
            log_file = pair.log_file("data")
            result = self.bulk_client.export_data(
                table,
                database,
                pair.data_file,
                pair.format_file,
                log_file,
                row_limit=row_limit,
            )
            if result.ok:
                log.success(f"Exported: {table.data_file_name}")
                counters.imported += 1
            else:
                log.warn(f"Failed to export data for: {table.in_database(database)}")
                log.show_tail(log_file, 5)
                counters.failed += 1

    def _summarize(self, report: DataExportReport) -> None:
        log = self.supervisor
        outcome = report.outcome
        log.summary("")
        log.summary("=== DATA EXPORT SUMMARY ===", style="bold")
        log.summary(f"Format files created: {report.formats.created}")
        log.summary(
            f"Format files failed: {report.formats.failed}",
            style="yellow" if report.formats.failed else "",
        )
        log.summary(f"Data files exported: {report.data.imported}")
        log.summary(
            f"Data exports failed: {report.data.failed}",
            style="yellow" if report.data.failed else "",
        )

        if outcome is ExportOutcome.COMPLETE:
            log.summary("✓ All exports completed successfully!", style="green")
        elif outcome is ExportOutcome.PARTIAL:
            log.summary(
                "⚠ Some exports failed, but continuing with partial data",
                style="yellow",
            )
        else:
            log.error("No exports succeeded - aborting")
