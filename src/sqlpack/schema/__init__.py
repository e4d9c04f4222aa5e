"""Schema export: per-category scripts, existence guards, ordered manifest.

Usage:
    from sqlpack.schema import SchemaExportPlanner, guard_table_script
"""

from sqlpack.schema.guard import (
    guard_batch,
    guard_table_file,
    guard_table_script,
    split_batches,
)
from sqlpack.schema.planner import SchemaExportPlanner, SchemaExportResult, render_script

__all__ = [
    "SchemaExportPlanner",
    "SchemaExportResult",
    "render_script",
    "guard_batch",
    "guard_table_file",
    "guard_table_script",
    "split_batches",
]
