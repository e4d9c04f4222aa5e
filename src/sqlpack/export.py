"""Export pipeline: source database -> export tree -> tar.gz archive.

Runs the schema planner and the table data exporter against one source
database, then decides whether the result is shipped:

- ``COMPLETE`` / ``PARTIAL``: the tree is packed into the archive.
- ``FAILED``: nothing succeeded, no archive is written.

When ``GITHUB_OUTPUT`` is set, ``archive_path`` and ``archive_size`` are
appended to it for CI workflows.
"""

import os
import shutil
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from sqlpack.archive import human_size, pack_archive
from sqlpack.clients.base import BulkCopyClient, ObjectScripter
from sqlpack.config.models import ExportOptions
from sqlpack.data.exporter import TableDataExporter
from sqlpack.errors import ConnectionFailedError
from sqlpack.manifest.io import DATA_DIR, SCHEMA_DIR, SCHEMA_MANIFEST, TABLE_MANIFEST, write_table_manifest
from sqlpack.manifest.models import DataExportReport, ExportOutcome, SchemaOnlySet
from sqlpack.schema.planner import SchemaExportPlanner, SchemaExportResult
from sqlpack.supervisor import Supervisor

# Entries a previous export may have left behind
_EXPORT_TREE = (SCHEMA_MANIFEST, TABLE_MANIFEST, SCHEMA_DIR, DATA_DIR)


@dataclass
class ExportResult:
    """Result of one export run.

    Attributes:
        schema: What the planner scripted.
        data: Data export counters and outcome.
        table_count: Tables listed in ``tables.txt``.
        archive_path: Written archive, or ``None`` when not archived.
        archive_size: Archive size in bytes (0 when not archived).
    """

    schema: SchemaExportResult
    data: DataExportReport
    table_count: int = 0
    archive_path: Path | None = None
    archive_size: int = 0

    @property
    def outcome(self) -> ExportOutcome:
        return self.data.outcome

    @property
    def archived(self) -> bool:
        return self.archive_path is not None

    @property
    def exit_code(self) -> int:
        return 0 if self.archived else 1


def prepare_output_dir(output_dir: Path) -> Path:
    """Create ``output_dir`` and clear the tree of a previous export.

    Only the files and directories an export writes are removed; anything
    else in ``output_dir`` is left alone.

    Returns:
        The data directory.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    for name in _EXPORT_TREE:
        path = output_dir / name
        if path.is_dir():
            shutil.rmtree(path)
        elif path.exists():
            path.unlink()
    data_dir = output_dir / DATA_DIR
    data_dir.mkdir()
    return data_dir


def write_github_output(
    archive_path: Path,
    archive_size: int,
    environ: Mapping[str, str] | None = None,
) -> bool:
    """Append archive details to ``$GITHUB_OUTPUT`` when it is set.

    Returns:
        True if the file was written.
    """
    environ = os.environ if environ is None else environ
    target = environ.get("GITHUB_OUTPUT")
    if not target:
        return False
    with open(target, "a", encoding="utf-8") as f:
        f.write(f"archive_path={archive_path}\n")
        f.write(f"archive_size={human_size(archive_size)}\n")
    return True


def export_database(
    options: ExportOptions,
    supervisor: Supervisor,
    scripter: ObjectScripter,
    bulk_client: BulkCopyClient,
    environ: Mapping[str, str] | None = None,
) -> ExportResult:
    """Export schema and data of ``options.database`` and archive it.

    Args:
        options: Export run options.
        supervisor: Logger and command runner.
        scripter: Scripts schema objects from the source database.
        bulk_client: Exports table data.
        environ: Environment for ``GITHUB_OUTPUT`` (defaults to os.environ).

    Returns:
        ExportResult; ``archive_path`` is ``None`` when the data export
        produced nothing.

    Raises:
        ConnectionFailedError: If the source tables cannot be listed.
        ManifestError: If the export tree cannot be read back.
    """
    log = supervisor
    output_dir = options.output_dir

    log.section("PREPARING EXPORT")
    log.info(f"Server: {options.connection.server}")
    log.info(f"Database: {options.database}")
    log.info(f"Output directory: {output_dir}")
    if options.row_limit:
        log.info(f"Row limit: {options.row_limit} per table")
    data_dir = prepare_output_dir(output_dir)

    try:
        tables = scripter.list_tables()
    except SQLAlchemyError as e:
        raise ConnectionFailedError(
            f"Failed to list tables in '{options.database}' on {options.connection.server}: {e}"
        ) from e

    tables_file = output_dir / TABLE_MANIFEST
    table_count = write_table_manifest(tables_file, tables)
    log.success(f"Found {table_count} tables")

    schema = SchemaExportPlanner(scripter, supervisor).plan(output_dir)

    data = TableDataExporter(bulk_client, supervisor).run(
        options.database,
        tables_file,
        data_dir,
        SchemaOnlySet.parse(options.schema_only_tables),
        row_limit=options.row_limit,
    )
    result = ExportResult(schema=schema, data=data, table_count=table_count)

    if data.outcome is ExportOutcome.FAILED:
        log.summary(f"✗ Export of '{options.database}' failed, no archive written", style="red")
        return result

    log.section("CREATING ARCHIVE")
    archive_path = pack_archive(output_dir, options.archive_name)
    result.archive_path = archive_path
    result.archive_size = archive_path.stat().st_size

    if write_github_output(archive_path, result.archive_size, environ):
        log.debug("Wrote archive details to GITHUB_OUTPUT")

    style = "green" if data.outcome is ExportOutcome.COMPLETE else "yellow"
    log.summary(
        f"Archive created: {archive_path} ({human_size(result.archive_size)})",
        style=style,
    )
    return result
