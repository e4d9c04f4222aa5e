"""Manifest files and the value types that flow through both pipelines.

Usage:
    from sqlpack.manifest import read_table_manifest, SchemaOnlySet, ValidTable
"""

from sqlpack.manifest.io import (
    DATA_DIR,
    SCHEMA_DIR,
    SCHEMA_MANIFEST,
    TABLE_MANIFEST,
    read_schema_manifest,
    read_table_manifest,
    write_schema_manifest,
    write_table_manifest,
)
from sqlpack.manifest.models import (
    DataCounters,
    DataExportReport,
    ExportOutcome,
    FormatCounters,
    ImportOutcome,
    InvalidLine,
    ObjectCategory,
    ParsedTable,
    SchemaApplyOutcome,
    SchemaApplyResult,
    SchemaOnlySet,
    SchemaUnit,
    TableDataPair,
    TableIdentifier,
    ValidTable,
    parse_table_line,
    quote_literal,
    quote_name,
)

__all__ = [
    "DATA_DIR",
    "SCHEMA_DIR",
    "SCHEMA_MANIFEST",
    "TABLE_MANIFEST",
    "read_schema_manifest",
    "read_table_manifest",
    "write_schema_manifest",
    "write_table_manifest",
    "DataCounters",
    "DataExportReport",
    "ExportOutcome",
    "FormatCounters",
    "ImportOutcome",
    "InvalidLine",
    "ObjectCategory",
    "ParsedTable",
    "SchemaApplyOutcome",
    "SchemaApplyResult",
    "SchemaOnlySet",
    "SchemaUnit",
    "TableDataPair",
    "TableIdentifier",
    "ValidTable",
    "parse_table_line",
    "quote_literal",
    "quote_name",
]
