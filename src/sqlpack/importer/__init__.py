"""Import an export archive into a target database.

Usage:
    from sqlpack.importer import ImportOrchestrator
"""

from sqlpack.errors import DatabaseBusyError
from sqlpack.importer.orchestrator import (
    ExtractedTree,
    ImportOrchestrator,
    ImportReport,
    ImportState,
    retarget_script,
)

__all__ = [
    "ImportOrchestrator",
    "ImportReport",
    "ImportState",
    "ExtractedTree",
    "DatabaseBusyError",
    "retarget_script",
]
