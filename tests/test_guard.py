"""Tests for the tables-script existence guard transform."""

import textwrap
from pathlib import Path

import pytest

from sqlpack.errors import GuardTransformError
from sqlpack.schema.guard import guard_batch, guard_table_file, guard_table_script, split_batches

TABLES_SCRIPT = textwrap.dedent("""\
    /****** Object:  Table [dbo].[Orders] ******/
    CREATE TABLE [dbo].[Orders] (
    \t[Id] INTEGER NOT NULL IDENTITY(1,1),
    \t[Total] DECIMAL(10, 2) NULL,
    \tCONSTRAINT [PK_Orders] PRIMARY KEY ([Id])
    )
    GO
    /****** Object:  Index [IX_Orders_Total] ******/
    CREATE NONCLUSTERED INDEX [IX_Orders_Total] ON [dbo].[Orders] ([Total])
    GO
    CREATE TABLE sales.Customers (Id INT NOT NULL)
    GO
""")


class TestSplitBatches:
    """GO separator handling."""

    def test_split(self) -> None:
        batches = split_batches("SELECT 1\nGO\n\ngo  \nSELECT 2\nGO\n")
        assert batches == ["SELECT 1", "SELECT 2"]

    def test_go_inside_identifier_is_not_separator(self) -> None:
        assert split_batches("CREATE TABLE [GO] (x INT)\nGO\n") == ["CREATE TABLE [GO] (x INT)"]


class TestGuardBatch:
    """Individual batch guards."""

    def test_create_table(self) -> None:
        guarded = guard_batch("CREATE TABLE [dbo].[Orders] (Id INT)")
        assert guarded == (
            "IF OBJECT_ID(N'[dbo].[Orders]', N'U') IS NULL\n"
            "BEGIN\n"
            "CREATE TABLE [dbo].[Orders] (Id INT)\n"
            "END"
        )

    def test_unqualified_table_defaults_to_dbo(self) -> None:
        guarded = guard_batch("create table Orders (Id int)")
        assert guarded.startswith("IF OBJECT_ID(N'[dbo].[Orders]', N'U') IS NULL")

    def test_three_part_name_uses_schema_and_table(self) -> None:
        guarded = guard_batch("CREATE TABLE [Shop].[sales].[Customers] (Id INT)")
        assert "OBJECT_ID(N'[sales].[Customers]', N'U')" in guarded

    def test_unique_clustered_index(self) -> None:
        guarded = guard_batch("CREATE UNIQUE CLUSTERED INDEX [UX_Code] ON [dbo].[Items] ([Code])")
        assert guarded.startswith(
            "IF NOT EXISTS (SELECT 1 FROM sys.indexes WHERE name = N'UX_Code' "
            "AND object_id = OBJECT_ID(N'[dbo].[Items]'))\nBEGIN\n"
        )
        assert guarded.endswith("\nEND")

    def test_header_comment_stays_above_guard(self) -> None:
        batch = "/****** Object:  Table [dbo].[Orders] ******/\nCREATE TABLE [dbo].[Orders] (Id INT)"
        guarded = guard_batch(batch)
        lines = guarded.splitlines()
        assert lines[0] == "/****** Object:  Table [dbo].[Orders] ******/"
        assert lines[1].startswith("IF OBJECT_ID")

    def test_other_statements_unchanged(self) -> None:
        batch = "ALTER TABLE [dbo].[Orders] ADD [Note] NVARCHAR(50) NULL"
        assert guard_batch(batch) == batch

    def test_already_guarded_unchanged(self) -> None:
        batch = "IF OBJECT_ID(N'[dbo].[Orders]', N'U') IS NULL\nBEGIN\nCREATE TABLE [dbo].[Orders] (Id INT)\nEND"
        assert guard_batch(batch) == batch

    def test_bracket_escape_in_name(self) -> None:
        guarded = guard_batch("CREATE TABLE [dbo].[Odd]]Name] (Id INT)")
        assert "OBJECT_ID(N'[dbo].[Odd]]Name]', N'U')" in guarded

    def test_unparseable_create_table_raises(self) -> None:
        with pytest.raises(GuardTransformError):
            guard_batch("CREATE TABLE (Id INT)")


class TestGuardTableScript:
    """Whole-script transform."""

    def test_every_creation_batch_guarded(self) -> None:
        guarded = guard_table_script(TABLES_SCRIPT)
        batches = split_batches(guarded)
        assert len(batches) == 3
        assert "IF OBJECT_ID(N'[dbo].[Orders]', N'U') IS NULL" in batches[0]
        assert "sys.indexes WHERE name = N'IX_Orders_Total'" in batches[1]
        assert "IF OBJECT_ID(N'[sales].[Customers]', N'U') IS NULL" in batches[2]

    def test_idempotent(self) -> None:
        once = guard_table_script(TABLES_SCRIPT)
        assert guard_table_script(once) == once

    def test_output_is_go_separated(self) -> None:
        guarded = guard_table_script(TABLES_SCRIPT)
        assert guarded.endswith("END\nGO\n")


class TestGuardTableFile:
    """File-to-file transform."""

    def test_writes_destination(self, tmp_path: Path) -> None:
        source = tmp_path / "tables.unguarded.sql"
        destination = tmp_path / "tables.sql"
        source.write_text(TABLES_SCRIPT, encoding="utf-8")
        guard_table_file(source, destination)
        assert destination.read_text(encoding="utf-8") == guard_table_script(TABLES_SCRIPT)

    def test_missing_source_raises_oserror(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            guard_table_file(tmp_path / "absent.sql", tmp_path / "tables.sql")
