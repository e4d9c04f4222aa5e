"""Tests for the export pipeline (planner + data exporter + archive)."""

import io
import tarfile
from pathlib import Path

import pytest
from rich.console import Console
from sqlalchemy.exc import OperationalError

from sqlpack.clients.base import ScriptedObject
from sqlpack.config.models import ConnectionSettings, ExportOptions, LogLevel, LogSettings
from sqlpack.errors import ConnectionFailedError
from sqlpack.export import export_database, prepare_output_dir, write_github_output
from sqlpack.manifest import ExportOutcome, ObjectCategory, TableIdentifier
from sqlpack.supervisor import ExecutionResult, Supervisor

TABLES = [
    TableIdentifier("Shop", "dbo", "Customers"),
    TableIdentifier("Shop", "dbo", "Orders"),
]


class FakeScripter:
    def __init__(self, tables=TABLES, list_error: Exception | None = None):
        self.tables = tables
        self.list_error = list_error

    def list_tables(self):
        if self.list_error is not None:
            raise self.list_error
        return list(self.tables)

    def script(self, category, options):
        if category is ObjectCategory.TABLES:
            return [
                ScriptedObject(category, t.schema, t.table, f"CREATE TABLE [{t.schema}].[{t.table}] (Id INT)", "TABLE")
                for t in self.tables
            ]
        return []


class FakeBcp:
    def __init__(self, fail_all: bool = False):
        self.fail_all = fail_all

    def generate_format(self, table, database, format_file, log_file=None):
        if self.fail_all:
            return ExecutionResult(1, log_file=log_file)
        format_file.write_text("14.0\n")
        return ExecutionResult(0, log_file=log_file)

    def export_data(self, table, database, data_file, format_file, log_file=None, row_limit=0):
        data_file.write_bytes(b"rows")
        return ExecutionResult(0, log_file=log_file)

    def import_data(self, *args, **kwargs):
        raise AssertionError("not used on export")


def _make_supervisor() -> Supervisor:
    console = Console(file=io.StringIO(), width=500, highlight=False)
    return Supervisor(LogSettings(level=LogLevel.ERROR), console=console, err_console=console)


def _options(tmp_path: Path, **overrides) -> ExportOptions:
    values = dict(
        connection=ConnectionSettings(server="source,1433"),
        database="Shop",
        output_dir=tmp_path / "db-export",
        archive_name=tmp_path / "db-dump.tar.gz",
    )
    values.update(overrides)
    return ExportOptions(**values)


class TestExportDatabase:
    """End-to-end export with fakes."""

    def test_complete_export_is_archived(self, tmp_path: Path) -> None:
        result = export_database(_options(tmp_path), _make_supervisor(), FakeScripter(), FakeBcp(), environ={})

        assert result.outcome is ExportOutcome.COMPLETE
        assert result.archived
        assert result.exit_code == 0
        assert result.table_count == 2
        assert result.archive_size == result.archive_path.stat().st_size

        with tarfile.open(result.archive_path) as tar:
            names = set(tar.getnames())
        assert {"tables.txt", "schema-files.txt", "schema/tables.sql", "data/dbo.Orders.fmt", "data/dbo.Orders.dat"} <= names

    def test_tables_manifest_written(self, tmp_path: Path) -> None:
        export_database(_options(tmp_path), _make_supervisor(), FakeScripter(), FakeBcp(), environ={})
        assert (tmp_path / "db-export" / "tables.txt").read_text() == "Shop.dbo.Customers\nShop.dbo.Orders\n"

    def test_failed_export_not_archived(self, tmp_path: Path) -> None:
        result = export_database(_options(tmp_path), _make_supervisor(), FakeScripter(), FakeBcp(fail_all=True), environ={})

        assert result.outcome is ExportOutcome.FAILED
        assert not result.archived
        assert result.exit_code == 1
        assert not (tmp_path / "db-dump.tar.gz").exists()

    def test_list_tables_failure(self, tmp_path: Path) -> None:
        scripter = FakeScripter(list_error=OperationalError("SELECT", {}, Exception("login failed")))
        with pytest.raises(ConnectionFailedError, match="Failed to list tables in 'Shop'"):
            export_database(_options(tmp_path), _make_supervisor(), scripter, FakeBcp(), environ={})

    def test_github_output(self, tmp_path: Path) -> None:
        github_output = tmp_path / "github_output"
        result = export_database(
            _options(tmp_path),
            _make_supervisor(),
            FakeScripter(),
            FakeBcp(),
            environ={"GITHUB_OUTPUT": str(github_output)},
        )
        lines = github_output.read_text().splitlines()
        assert lines[0] == f"archive_path={result.archive_path}"
        assert lines[1].startswith("archive_size=")


class TestPrepareOutputDir:
    """Only a previous export's tree is cleared."""

    def test_clears_previous_export(self, tmp_path: Path) -> None:
        out = tmp_path / "db-export"
        (out / "data").mkdir(parents=True)
        (out / "data" / "stale.dat").write_text("old")
        (out / "tables.txt").write_text("Old.dbo.T\n")
        (out / "notes.md").write_text("keep me")

        data_dir = prepare_output_dir(out)

        assert data_dir == out / "data"
        assert list(data_dir.iterdir()) == []
        assert not (out / "tables.txt").exists()
        assert (out / "notes.md").read_text() == "keep me"

    def test_creates_missing_dir(self, tmp_path: Path) -> None:
        data_dir = prepare_output_dir(tmp_path / "new" / "export")
        assert data_dir.is_dir()


class TestGithubOutput:
    """GITHUB_OUTPUT is optional."""

    def test_unset(self, tmp_path: Path) -> None:
        assert write_github_output(tmp_path / "a.tar.gz", 10, environ={}) is False

    def test_appends(self, tmp_path: Path) -> None:
        target = tmp_path / "out"
        target.write_text("existing=1\n")
        assert write_github_output(Path("db-dump.tar.gz"), 2048, environ={"GITHUB_OUTPUT": str(target)})
        assert target.read_text() == "existing=1\narchive_path=db-dump.tar.gz\narchive_size=2.0K\n"
