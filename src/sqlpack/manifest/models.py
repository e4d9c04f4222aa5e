"""Value types shared by the export and import pipelines.

Usage:
    from sqlpack.manifest.models import parse_table_line, ValidTable

    parsed = parse_table_line("Shop.dbo.Orders")
    if isinstance(parsed, ValidTable):
        parsed.table.format_file_name   # 'dbo.Orders.fmt'
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path


# ------------------------------------------------------------------
# Table identifiers
# ------------------------------------------------------------------


@dataclass(frozen=True)
class TableIdentifier:
    """A fully qualified ``Database.Schema.Table`` name."""

    database: str
    schema: str
    table: str

    def __str__(self) -> str:
        return f"{self.database}.{self.schema}.{self.table}"

    @property
    def qualified(self) -> str:
        """``Schema.Table`` (database-independent)."""
        return f"{self.schema}.{self.table}"

    @property
    def format_file_name(self) -> str:
        return f"{self.schema}.{self.table}.fmt"

    @property
    def data_file_name(self) -> str:
        return f"{self.schema}.{self.table}.dat"

    def in_database(self, database: str) -> str:
        """Dotted name re-pointed at ``database`` (bcp source form)."""
        return f"{database}.{self.schema}.{self.table}"

    def bracketed(self, database: str) -> str:
        """``[database].[schema].[table]`` for use in T-SQL and bcp."""
        return ".".join(quote_name(p) for p in (database, self.schema, self.table))


@dataclass(frozen=True)
class ValidTable:
    """A manifest line that parsed into a TableIdentifier."""

    table: TableIdentifier
    raw: str


@dataclass(frozen=True)
class InvalidLine:
    """A manifest line that is not ``X.Y.Z``; always a per-item failure."""

    raw: str


ParsedTable = ValidTable | InvalidLine


def parse_table_line(line: str) -> ParsedTable:
    """Strictly parse one table-manifest line.

    Exactly three non-empty components separated by dots; surrounding
    whitespace on the line and on each part is ignored.

    Example:
        >>> parse_table_line("Shop.dbo.Orders")
        ValidTable(table=TableIdentifier(database='Shop', schema='dbo', table='Orders'), raw='Shop.dbo.Orders')
        >>> parse_table_line("dbo.Orders")
        InvalidLine(raw='dbo.Orders')
    """
    raw = line.strip()
    parts = [p.strip() for p in raw.split(".")]
    if len(parts) != 3 or not all(parts):
        return InvalidLine(raw=raw)
    return ValidTable(table=TableIdentifier(*parts), raw=raw)


def quote_name(name: str) -> str:
    """Quote an identifier T-SQL style: ``a]b`` -> ``[a]]b]``."""
    return "[" + name.replace("]", "]]") + "]"


def quote_literal(value: str) -> str:
    """Quote a string as an N'...' literal."""
    return "N'" + value.replace("'", "''") + "'"


# ------------------------------------------------------------------
# Schema-only set
# ------------------------------------------------------------------


@dataclass(frozen=True)
class SchemaOnlySet:
    """Tables whose structure is transferred but whose rows are not.

    Entries may be ``Table``, ``Schema.Table`` or ``Database.Schema.Table``.
    An entry matches an identifier when its parts equal the identifier's
    trailing parts, compared case-insensitively.
    """

    entries: tuple[tuple[str, ...], ...] = ()

    @classmethod
    def parse(cls, value: str | None) -> "SchemaOnlySet":
        """Parse a comma-separated list (``"AuditLog, dbo.Sessions"``)."""
        entries = []
        for item in (value or "").split(","):
            item = item.strip()
            if not item:
                continue
            parts = tuple(p.strip().casefold() for p in item.split("."))
            if all(parts) and len(parts) <= 3:
                entries.append(parts)
        return cls(entries=tuple(entries))

    def __contains__(self, table: object) -> bool:
        if not isinstance(table, TableIdentifier):
            return False
        full = (
            table.database.casefold(),
            table.schema.casefold(),
            table.table.casefold(),
        )
        return any(full[-len(entry):] == entry for entry in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __str__(self) -> str:
        return ",".join(".".join(e) for e in self.entries)


# ------------------------------------------------------------------
# Schema units
# ------------------------------------------------------------------


class ObjectCategory(Enum):
    """Schema object categories in required application order."""

    TABLES = "tables"
    CONSTRAINTS = "constraints"
    PROCEDURES = "procedures"
    FUNCTIONS = "functions"
    VIEWS = "views"

    @property
    def file_name(self) -> str:
        return f"{self.value}.sql"


@dataclass(frozen=True)
class SchemaUnit:
    """One script file holding one category of schema objects."""

    file_name: str
    category: ObjectCategory | None = None

    @classmethod
    def for_category(cls, category: ObjectCategory) -> "SchemaUnit":
        return cls(file_name=category.file_name, category=category)


# ------------------------------------------------------------------
# Table data pairs
# ------------------------------------------------------------------


@dataclass(frozen=True)
class TableDataPair:
    """A table's format descriptor and data payload, side by side."""

    table: TableIdentifier
    format_file: Path
    data_file: Path

    @classmethod
    def in_dir(cls, table: TableIdentifier, data_dir: Path) -> "TableDataPair":
        return cls(
            table=table,
            format_file=data_dir / table.format_file_name,
            data_file=data_dir / table.data_file_name,
        )

    @property
    def has_format(self) -> bool:
        return self.format_file.is_file()

    @property
    def has_data(self) -> bool:
        return self.data_file.is_file()

    @property
    def is_complete(self) -> bool:
        return self.has_format and self.has_data

    @property
    def is_empty(self) -> bool:
        """A zero-byte payload: a valid "no rows" table."""
        return self.has_data and self.data_file.stat().st_size == 0

    def log_file(self, kind: str) -> Path:
        """Per-table tool log, e.g. ``dbo.Orders.format.log``."""
        return self.data_file.parent / f"{self.table.qualified}.{kind}.log"


# ------------------------------------------------------------------
# Counters
# ------------------------------------------------------------------


@dataclass
class FormatCounters:
    created: int = 0
    failed: int = 0


@dataclass
class DataCounters:
    imported: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.imported + self.failed


# ------------------------------------------------------------------
# Stage outcomes
# ------------------------------------------------------------------


class ExportOutcome(IntEnum):
    """Result of the table data exporter; the value is the exit code."""

    COMPLETE = 0
    PARTIAL = 1  # some artifacts failed; the dump is still worth shipping
    FAILED = 2  # nothing succeeded; abort packaging

    @property
    def exit_code(self) -> int:
        return int(self)


class ImportOutcome(Enum):
    """Result of an import run."""

    SUCCESS = "success"
    SUCCESS_WITH_WARNINGS = "success_with_warnings"
    FATAL = "fatal"

    @property
    def exit_code(self) -> int:
        return 1 if self is ImportOutcome.FATAL else 0


class SchemaApplyOutcome(IntEnum):
    """Result of applying one schema file (sqlcmd wrapper convention)."""

    CLEAN = 0
    FATAL = 1
    WARNINGS = 2  # executed, but the tool printed messages

    @classmethod
    def from_exit_code(cls, code: int) -> "SchemaApplyOutcome":
        if code == 0:
            return cls.CLEAN
        if code == 2:
            return cls.WARNINGS
        return cls.FATAL

    @property
    def succeeded(self) -> bool:
        return self is not SchemaApplyOutcome.FATAL


@dataclass
class SchemaApplyResult:
    unit: SchemaUnit
    outcome: SchemaApplyOutcome
    log_file: Path | None = None
    detail: str = ""


@dataclass
class DataExportReport:
    """Counters and outcome of one data export run."""

    formats: FormatCounters = field(default_factory=FormatCounters)
    data: DataCounters = field(default_factory=DataCounters)

    @property
    def outcome(self) -> ExportOutcome:
        if self.formats.failed == 0 and self.data.failed == 0:
            return ExportOutcome.COMPLETE
        if self.data.imported > 0 or self.formats.created > 0:
            return ExportOutcome.PARTIAL
        return ExportOutcome.FAILED
