"""Table data export as paired format/data files.

Usage:
    from sqlpack.data import TableDataExporter
"""

from sqlpack.data.exporter import TableDataExporter

__all__ = ["TableDataExporter"]
