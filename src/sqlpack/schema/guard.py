"""Existence guards for the tables script.

Wraps every ``CREATE TABLE`` batch in ``IF OBJECT_ID(...) IS NULL`` and
every ``CREATE ... INDEX`` batch in an ``IF NOT EXISTS (sys.indexes)``
check, so re-applying the script to a partially populated database
creates nothing twice.

Batches that already start with ``IF`` are left alone, which makes the
transform idempotent: ``guard_table_script(guard_table_script(s)) ==
guard_table_script(s)``.

Usage:
    from sqlpack.schema.guard import guard_table_file

    guard_table_file(Path("tables.unguarded.sql"), Path("tables.sql"))
"""

import re
from pathlib import Path

from sqlpack.errors import GuardTransformError
from sqlpack.manifest.models import quote_literal, quote_name

_GO = re.compile(r"^\s*GO\s*$", re.IGNORECASE | re.MULTILINE)

# [bracketed]]name], "quoted", or bare identifier
_NAME = r'(?:\[(?:[^\]]|\]\])+\]|"[^"]+"|[\w@#$]+)'
_QUALIFIED = rf"(?P<parts>{_NAME}(?:\s*\.\s*{_NAME}){{0,2}})"

_CREATE_TABLE = re.compile(rf"^CREATE\s+TABLE\s+{_QUALIFIED}", re.IGNORECASE)
_CREATE_INDEX = re.compile(
    rf"^CREATE\s+(?:UNIQUE\s+)?(?:CLUSTERED\s+|NONCLUSTERED\s+)?INDEX\s+"
    rf"(?P<index>{_NAME})\s+ON\s+{_QUALIFIED}",
    re.IGNORECASE,
)
_STARTS_CREATE_TABLE = re.compile(r"^CREATE\s+TABLE\b", re.IGNORECASE)
_STARTS_CREATE_INDEX = re.compile(
    r"^CREATE\s+(?:UNIQUE\s+)?(?:CLUSTERED\s+|NONCLUSTERED\s+)?INDEX\b",
    re.IGNORECASE,
)
_ALREADY_GUARDED = re.compile(r"^IF\b", re.IGNORECASE)
_NAME_PART = re.compile(_NAME)

DEFAULT_SCHEMA = "dbo"


def split_batches(script: str) -> list[str]:
    """Split a script on ``GO`` separator lines; empty batches are dropped."""
    return [b.strip() for b in _GO.split(script) if b.strip()]


def join_batches(batches: list[str]) -> str:
    return "".join(f"{batch}\nGO\n" for batch in batches)


def _unquote(part: str) -> str:
    if part.startswith("[") and part.endswith("]"):
        return part[1:-1].replace("]]", "]")
    if part.startswith('"') and part.endswith('"'):
        return part[1:-1]
    return part


def _schema_and_name(qualified: str) -> tuple[str, str]:
    parts = [_unquote(p) for p in _NAME_PART.findall(qualified)]
    if len(parts) == 1:
        return DEFAULT_SCHEMA, parts[0]
    return parts[-2], parts[-1]


def _split_leading_comments(batch: str) -> tuple[str, str]:
    """Separate header comment lines from the statement body."""
    lines = batch.splitlines()
    i = 0
    in_block = False
    while i < len(lines):
        stripped = lines[i].strip()
        if in_block:
            if "*/" in stripped:
                in_block = False
            i += 1
        elif not stripped or stripped.startswith("--"):
            i += 1
        elif stripped.startswith("/*"):
            in_block = "*/" not in stripped[2:]
            i += 1
        else:
            break
    return "\n".join(lines[:i]), "\n".join(lines[i:])


def guard_batch(batch: str) -> str:
    """Guard one batch; non-creation batches pass through unchanged.

    Raises:
        GuardTransformError: If a CREATE TABLE/INDEX batch cannot be parsed.
    """
    header, body = _split_leading_comments(batch)
    if not body or _ALREADY_GUARDED.match(body):
        return batch

    if _STARTS_CREATE_TABLE.match(body):
        match = _CREATE_TABLE.match(body)
        if match is None:
            raise GuardTransformError(f"Cannot parse table name: {body[:80]!r}")
        schema, name = _schema_and_name(match.group("parts"))
        target = f"{quote_name(schema)}.{quote_name(name)}"
        condition = f"IF OBJECT_ID({quote_literal(target)}, N'U') IS NULL"
    elif _STARTS_CREATE_INDEX.match(body):
        match = _CREATE_INDEX.match(body)
        if match is None:
            raise GuardTransformError(f"Cannot parse index definition: {body[:80]!r}")
        index = _unquote(match.group("index"))
        schema, name = _schema_and_name(match.group("parts"))
        target = f"{quote_name(schema)}.{quote_name(name)}"
        condition = (
            "IF NOT EXISTS (SELECT 1 FROM sys.indexes "
            f"WHERE name = {quote_literal(index)} "
            f"AND object_id = OBJECT_ID({quote_literal(target)}))"
        )
    else:
        return batch

    guarded = f"{condition}\nBEGIN\n{body}\nEND"
    return f"{header}\n{guarded}" if header else guarded


def guard_table_script(script: str) -> str:
    """Guard every creation batch in a tables script."""
    return join_batches([guard_batch(b) for b in split_batches(script)])


def guard_table_file(source: Path, destination: Path) -> None:
    """Read ``source``, guard it, write ``destination``.

    Raises:
        GuardTransformError: If a batch cannot be parsed.
        OSError: If either file cannot be read or written.
    """
    script = source.read_text(encoding="utf-8")
    destination.write_text(guard_table_script(script), encoding="utf-8")
