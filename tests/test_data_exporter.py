"""Tests for the two-pass table data exporter."""

import io
from pathlib import Path

import pytest
from rich.console import Console

from sqlpack.config.models import LogLevel, LogSettings
from sqlpack.data import TableDataExporter
from sqlpack.errors import ManifestError
from sqlpack.manifest import ExportOutcome, SchemaOnlySet
from sqlpack.supervisor import ExecutionResult, Supervisor


def _make_supervisor(level: LogLevel = LogLevel.ERROR) -> tuple[Supervisor, io.StringIO]:
    out = io.StringIO()
    console = Console(file=out, width=500, highlight=False)
    return Supervisor(LogSettings(level=level), console=console, err_console=console), out


class FakeBcp:
    """BulkCopyClient fake that writes real files and records calls."""

    def __init__(self, fail_format=(), fail_export=()):
        self.fail_format = set(fail_format)
        self.fail_export = set(fail_export)
        self.format_calls: list[str] = []
        self.export_calls: list[tuple[str, int]] = []

    def generate_format(self, table, database, format_file, log_file=None) -> ExecutionResult:
        self.format_calls.append(table.qualified)
        if log_file is not None:
            log_file.write_text(f"format {table}\n")
        if table.table in self.fail_format:
            format_file.write_text("partial")
            return ExecutionResult(1, b"Invalid object name", log_file=log_file)
        format_file.write_text("14.0\n1\n")
        return ExecutionResult(0, log_file=log_file)

    def export_data(self, table, database, data_file, format_file, log_file=None, row_limit=0) -> ExecutionResult:
        self.export_calls.append((table.qualified, row_limit))
        if table.table in self.fail_export:
            return ExecutionResult(1, b"Error", log_file=log_file)
        data_file.write_bytes(b"\x00rows")
        return ExecutionResult(0, log_file=log_file)

    def import_data(self, table, database, data_file, format_file, log_file=None) -> ExecutionResult:
        raise AssertionError("import_data is not used on export")


@pytest.fixture
def export_tree(tmp_path: Path) -> tuple[Path, Path]:
    """tables.txt with three tables plus an empty data directory."""
    tables_file = tmp_path / "tables.txt"
    tables_file.write_text("Shop.dbo.Customers\nShop.dbo.Orders\nShop.sales.Invoices\n")
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    return tables_file, data_dir


class TestOutcomes:
    """COMPLETE / PARTIAL / FAILED scenarios."""

    def test_all_succeed(self, export_tree) -> None:
        tables_file, data_dir = export_tree
        supervisor, out = _make_supervisor()
        report = TableDataExporter(FakeBcp(), supervisor).run("Shop", tables_file, data_dir)

        assert report.outcome is ExportOutcome.COMPLETE
        assert (report.formats.created, report.formats.failed) == (3, 0)
        assert (report.data.imported, report.data.failed) == (3, 0)
        assert "All exports completed successfully" in out.getvalue()

    def test_two_ok_one_fails(self, export_tree) -> None:
        tables_file, data_dir = export_tree
        supervisor, out = _make_supervisor()
        bcp = FakeBcp(fail_export={"Invoices"})
        report = TableDataExporter(bcp, supervisor).run("Shop", tables_file, data_dir)

        assert report.outcome is ExportOutcome.PARTIAL
        assert report.data.imported == 2
        assert report.data.failed == 1
        assert "continuing with partial data" in out.getvalue()

    def test_all_fail_in_pass_one(self, export_tree) -> None:
        tables_file, data_dir = export_tree
        supervisor, out = _make_supervisor()
        bcp = FakeBcp(fail_format={"Customers", "Orders", "Invoices"})
        report = TableDataExporter(bcp, supervisor).run("Shop", tables_file, data_dir)

        assert report.outcome is ExportOutcome.FAILED
        assert report.formats.failed == 3
        assert report.data.failed == 3
        assert bcp.export_calls == []
        assert "No exports succeeded - aborting" in out.getvalue()

    def test_counters_fresh_per_run(self, export_tree) -> None:
        tables_file, data_dir = export_tree
        supervisor, _ = _make_supervisor()
        exporter = TableDataExporter(FakeBcp(), supervisor)
        exporter.run("Shop", tables_file, data_dir)
        report = exporter.run("Shop", tables_file, data_dir)
        assert report.data.imported == 3


class TestPairing:
    """Pass 2 only exports through descriptors written in pass 1."""

    def test_placeholder_written_with_format(self, export_tree) -> None:
        tables_file, data_dir = export_tree
        supervisor, _ = _make_supervisor()
        TableDataExporter(FakeBcp(fail_export={"Orders"}), supervisor).run("Shop", tables_file, data_dir)
        assert (data_dir / "dbo.Orders.fmt").is_file()
        assert (data_dir / "dbo.Orders.dat").stat().st_size == 0

    def test_failed_format_removes_stale_descriptor(self, export_tree) -> None:
        tables_file, data_dir = export_tree
        supervisor, _ = _make_supervisor()
        bcp = FakeBcp(fail_format={"Orders"})
        report = TableDataExporter(bcp, supervisor).run("Shop", tables_file, data_dir)

        assert not (data_dir / "dbo.Orders.fmt").exists()
        assert not (data_dir / "dbo.Orders.dat").exists()
        assert "dbo.Orders" not in [name for name, _ in bcp.export_calls]
        assert report.data.failed == 1
        assert report.outcome is ExportOutcome.PARTIAL

    def test_missing_descriptor_is_skipped_and_counted(self, export_tree, monkeypatch) -> None:
        tables_file, data_dir = export_tree
        supervisor, out = _make_supervisor(LogLevel.WARN)
        bcp = FakeBcp()
        exporter = TableDataExporter(bcp, supervisor)

        original = exporter._generate_formats

        def generate_then_delete(*args, **kwargs):
            original(*args, **kwargs)
            (data_dir / "dbo.Customers.fmt").unlink()

        monkeypatch.setattr(exporter, "_generate_formats", generate_then_delete)
        report = exporter.run("Shop", tables_file, data_dir)

        assert "dbo.Customers" not in [name for name, _ in bcp.export_calls]
        assert report.data.failed == 1
        assert report.data.imported == 2
        assert "Format file not found for Shop.dbo.Customers, skipping" in out.getvalue()


class TestManifestHandling:
    """Invalid lines, schema-only tables, row limits."""

    def test_invalid_lines_never_reach_bcp(self, tmp_path: Path) -> None:
        tables_file = tmp_path / "tables.txt"
        tables_file.write_text("Shop.dbo.Orders\nnot-a-table\n\ndbo.Missing\n")
        data_dir = tmp_path / "data"
        data_dir.mkdir()
        supervisor, _ = _make_supervisor()
        bcp = FakeBcp()
        report = TableDataExporter(bcp, supervisor).run("Shop", tables_file, data_dir)

        assert bcp.format_calls == ["dbo.Orders"]
        assert [name for name, _ in bcp.export_calls] == ["dbo.Orders"]
        assert report.formats.failed == 2
        assert report.data.failed == 2
        assert report.outcome is ExportOutcome.PARTIAL

    def test_schema_only_tables_get_format_but_no_data(self, export_tree) -> None:
        tables_file, data_dir = export_tree
        supervisor, _ = _make_supervisor()
        bcp = FakeBcp()
        report = TableDataExporter(bcp, supervisor).run(
            "Shop", tables_file, data_dir, SchemaOnlySet.parse("invoices")
        )

        assert "sales.Invoices" in bcp.format_calls
        assert "sales.Invoices" not in [name for name, _ in bcp.export_calls]
        assert (data_dir / "sales.Invoices.dat").stat().st_size == 0
        assert report.outcome is ExportOutcome.COMPLETE
        assert report.data.imported == 2

    def test_row_limit_forwarded(self, export_tree) -> None:
        tables_file, data_dir = export_tree
        supervisor, _ = _make_supervisor()
        bcp = FakeBcp()
        TableDataExporter(bcp, supervisor).run("Shop", tables_file, data_dir, row_limit=500)
        assert {limit for _, limit in bcp.export_calls} == {500}

    def test_source_database_overrides_manifest(self, export_tree) -> None:
        tables_file, data_dir = export_tree
        supervisor, _ = _make_supervisor()
        seen: list[str] = []

        class RecordingBcp(FakeBcp):
            def generate_format(self, table, database, format_file, log_file=None):
                seen.append(table.in_database(database))
                return super().generate_format(table, database, format_file, log_file)

        TableDataExporter(RecordingBcp(), supervisor).run("ShopCopy", tables_file, data_dir)
        assert seen[0] == "ShopCopy.dbo.Customers"

    def test_missing_data_dir(self, tmp_path: Path) -> None:
        tables_file = tmp_path / "tables.txt"
        tables_file.write_text("Shop.dbo.Orders\n")
        supervisor, _ = _make_supervisor()
        with pytest.raises(ManifestError, match="Data directory not found"):
            TableDataExporter(FakeBcp(), supervisor).run("Shop", tables_file, tmp_path / "data")

    def test_missing_tables_file(self, tmp_path: Path) -> None:
        supervisor, _ = _make_supervisor()
        with pytest.raises(ManifestError, match="Tables file not found"):
            TableDataExporter(FakeBcp(), supervisor).run("Shop", tmp_path / "tables.txt", tmp_path)

    def test_undecodable_tables_file(self, tmp_path: Path) -> None:
        tables_file = tmp_path / "tables.txt"
        tables_file.write_bytes(b"Shop.dbo.\xffOrders\n")
        data_dir = tmp_path / "data"
        data_dir.mkdir()
        supervisor, _ = _make_supervisor()
        bcp = FakeBcp()
        with pytest.raises(ManifestError, match="Tables file is not valid UTF-8"):
            TableDataExporter(bcp, supervisor).run("Shop", tables_file, data_dir)
        assert bcp.format_calls == []


class TestFailureOutput:
    """Failures show the tail of the per-table log below TRACE."""

    def test_tail_shown_on_format_failure(self, export_tree) -> None:
        tables_file, data_dir = export_tree
        supervisor, out = _make_supervisor(LogLevel.WARN)
        TableDataExporter(FakeBcp(fail_format={"Orders"}), supervisor).run("Shop", tables_file, data_dir)
        text = out.getvalue()
        assert "Failed to create format file for: Shop.dbo.Orders" in text
        assert "    format Shop.dbo.Orders" in text
        assert (data_dir / "dbo.Orders.format.log").is_file()
