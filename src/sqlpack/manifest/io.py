"""Read and write the two manifest files.

- ``tables.txt``: one ``Database.Schema.Table`` per line.
- ``schema-files.txt``: one schema script file name per line, in the
  order the files must be applied.

Both are UTF-8; blank lines are ignored.
"""

from collections.abc import Iterable
from pathlib import Path

from sqlpack.errors import ManifestError
from sqlpack.manifest.models import (
    ObjectCategory,
    ParsedTable,
    SchemaUnit,
    TableIdentifier,
    parse_table_line,
)

TABLE_MANIFEST = "tables.txt"
SCHEMA_MANIFEST = "schema-files.txt"
SCHEMA_DIR = "schema"
DATA_DIR = "data"

_CATEGORY_BY_FILE = {c.file_name: c for c in ObjectCategory}


def _read_lines(path: Path, what: str) -> list[str]:
    if not path.is_file():
        raise ManifestError(f"{what} not found: {path}")
    try:
        text = path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise ManifestError(f"{what} is not valid UTF-8: {path} (byte {e.start})") from e
    return [line.strip() for line in text.splitlines() if line.strip()]


def read_table_manifest(path: Path) -> list[ParsedTable]:
    """Parse every non-blank line; invalid lines are kept as ``InvalidLine``.

    Raises:
        ManifestError: If the file does not exist or is not UTF-8.
    """
    return [parse_table_line(line) for line in _read_lines(path, "Tables file")]


def write_table_manifest(path: Path, tables: Iterable[TableIdentifier]) -> int:
    """Write ``tables`` one per line; returns the number written."""
    lines = [str(t) for t in tables]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
    return len(lines)


def read_schema_manifest(path: Path) -> list[SchemaUnit]:
    """Return schema units in file order (the required application order).

    Raises:
        ManifestError: If the file does not exist or is not UTF-8.
    """
    return [
        SchemaUnit(file_name=name, category=_CATEGORY_BY_FILE.get(name))
        for name in _read_lines(path, "Schema manifest")
    ]


def write_schema_manifest(path: Path, units: Iterable[SchemaUnit]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(f"{u.file_name}\n" for u in units), encoding="utf-8")
