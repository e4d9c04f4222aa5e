"""Tests for the sqlpack command line."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from sqlpack.cli import build_parser, main
from sqlpack.supervisor import ExecutionResult

ENV_VARS = [
    "DB_SERVER",
    "DB_NAME",
    "DB_USERNAME",
    "DB_PASSWORD",
    "DB_TRUST_SERVER_CERTIFICATE",
    "DB_ODBC_DRIVER",
    "DB_EXPORT_DIR",
    "DB_ROW_LIMIT",
    "DB_SCHEMA_ONLY_TABLES",
    "SQLPACK_LOG",
    "SQLPACK_LOG_TIMESTAMP",
    "SQLPACK_PROFILE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Run every test from an empty directory with no DB_* variables."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


class FakeBcp:
    """Records bcp calls and writes plausible files."""

    def __init__(self):
        self.calls: list[tuple[str, str]] = []

    def generate_format(self, table, database, format_file, log_file=None):
        self.calls.append(("format", table.qualified))
        format_file.write_text("14.0\n")
        return ExecutionResult(0, log_file=log_file)

    def export_data(self, table, database, data_file, format_file, log_file=None, row_limit=0):
        self.calls.append(("out", f"{database}.{table.qualified}:{row_limit}"))
        data_file.write_bytes(b"rows")
        return ExecutionResult(0, log_file=log_file)


class TestParser:
    """Argument parsing and dispatch."""

    def test_env_prefix_dispatch(self) -> None:
        with patch("sys.argv", ["sqlpack", "--env-prefix", "CI_", "doctor"]):
            with patch("sqlpack.cli.cmd_doctor", return_value=0) as mock_doctor:
                assert main() == 0
        args = mock_doctor.call_args[0][0]
        assert args.env_prefix == "CI_"

    def test_import_requires_archive(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["import", "-d", "ShopDev"])
        assert exc_info.value.code == 2

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 2

    def test_invalid_log_level(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--log-level", "verbose", "doctor"])
        assert exc_info.value.code == 2

    def test_import_defaults(self) -> None:
        args = build_parser().parse_args(["import", "-a", "db-dump.tar.gz"])
        assert args.work_dir == "./db-import-work"
        assert not args.force
        assert not args.skip_data
        assert not args.keep_work_dir

    def test_export_short_options(self) -> None:
        args = build_parser().parse_args(
            ["export", "-s", "prod,1433", "-d", "Shop", "-o", "out", "-a", "x.tar.gz", "-L", "50"]
        )
        assert (args.server, args.database, args.output_dir, args.archive_name, args.row_limit) == (
            "prod,1433", "Shop", "out", "x.tar.gz", 50,
        )


class TestErrors:
    """Configuration errors become exit code 1."""

    def test_missing_database(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["export-data"]) == 1
        assert "Database name is required" in capsys.readouterr().err

    def test_missing_config_file(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--config", "absent.toml", "doctor"]) == 1
        assert "sqlpack config not found" in capsys.readouterr().err

    def test_unknown_profile(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        (tmp_path / "sqlpack.toml").write_text('[profiles.local]\nserver = "localhost,1433"\n')
        assert main(["--profile", "prod", "doctor"]) == 1
        assert "Profile 'prod' not found. Available: local" in capsys.readouterr().err

    def test_negative_row_limit(self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
        monkeypatch.setenv("DB_ROW_LIMIT", "-5")
        assert main(["export-data", "-d", "Shop"]) == 1
        assert "Invalid row limit: -5" in capsys.readouterr().err


class TestExportDataCommand:
    """export-data wiring with a fake bcp."""

    def _prepare(self, root: Path) -> Path:
        export_dir = root / "db-export"
        (export_dir / "data").mkdir(parents=True)
        (export_dir / "tables.txt").write_text("Shop.dbo.Orders\nShop.audit.Log\n")
        return export_dir

    def test_defaults_from_export_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        self._prepare(tmp_path)
        monkeypatch.setenv("DB_ROW_LIMIT", "10")
        fake = FakeBcp()
        with patch("sqlpack.cli.BcpClient", MagicMock(return_value=fake)):
            code = main(["export-data", "-d", "ShopCopy", "--schema-only-tables", "audit.Log"])

        assert code == 0
        assert ("out", "ShopCopy.dbo.Orders:10") in fake.calls
        assert ("format", "audit.Log") in fake.calls
        assert not any(call == ("out", "ShopCopy.audit.Log:10") for call in fake.calls)
        assert (tmp_path / "db-export" / "data" / "dbo.Orders.dat").read_bytes() == b"rows"

    def test_explicit_paths_and_prefix(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        export_dir = self._prepare(tmp_path / "elsewhere")
        monkeypatch.setenv("CI_DB_NAME", "Shop")
        fake = FakeBcp()
        with patch("sqlpack.cli.BcpClient", MagicMock(return_value=fake)) as bcp_class:
            code = main([
                "--env-prefix", "CI_",
                "export-data",
                "--data-dir", str(export_dir / "data"),
                "--tables-file", str(export_dir / "tables.txt"),
            ])

        assert code == 0
        connection = bcp_class.call_args[0][0]
        assert connection.server == "localhost,1433"
        assert ("out", "Shop.dbo.Orders:0") in fake.calls

    def test_missing_data_dir(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("sqlpack.cli.BcpClient", MagicMock(return_value=FakeBcp())):
            assert main(["export-data", "-d", "Shop"]) == 1
        assert "Data directory not found" in capsys.readouterr().err


class TestImportCommand:
    """import wiring."""

    def test_options_passed_to_orchestrator(self) -> None:
        orchestrator = MagicMock()
        orchestrator.run.return_value.exit_code = 0
        with patch("sqlpack.cli.ImportOrchestrator", return_value=orchestrator) as orchestrator_class:
            code = main([
                "import", "-a", "dump.zip", "-d", "ShopDev", "-u", "sa", "-p", "pw",
                "--force", "--skip-data", "-w", "work",
            ])

        assert code == 0
        options = orchestrator_class.call_args[0][0]
        assert options.database == "ShopDev"
        assert options.archive_path == Path("dump.zip")
        assert options.work_dir == Path("work")
        assert options.force and options.skip_data and not options.keep_work_dir
        assert options.connection.username == "sa"
        assert not options.connection.uses_trusted_connection

    def test_fatal_exit_code(self) -> None:
        orchestrator = MagicMock()
        orchestrator.run.return_value.exit_code = 1
        with patch("sqlpack.cli.ImportOrchestrator", return_value=orchestrator):
            assert main(["import", "-a", "dump.tar.gz", "-d", "ShopDev"]) == 1


class TestDoctorCommand:
    """doctor wiring."""

    def test_runs_checks(self) -> None:
        with patch("sqlpack.cli.run_doctor", return_value=0) as mock_run:
            assert main(["doctor"]) == 0
        mock_run.assert_called_once()
