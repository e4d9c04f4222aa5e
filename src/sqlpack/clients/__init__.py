"""Database tool clients.

Provides the ``SqlClient``, ``BulkCopyClient`` and ``ObjectScripter``
Protocols and their concrete implementations over sqlcmd, bcp and
SQLAlchemy.

``SqlAlchemyScripter`` needs the pyodbc driver at connect time only;
importing this package does not open connections.

Usage:
    from sqlpack.clients import SqlCmdClient, BcpClient, SqlAlchemyScripter
"""

from sqlpack.clients.base import (
    CATEGORY_OPTIONS,
    CONSTRAINT_OPTIONS,
    MODULE_OPTIONS,
    TABLE_OPTIONS,
    BulkCopyClient,
    ObjectScripter,
    ScriptedObject,
    ScriptingOptions,
    SqlClient,
)
from sqlpack.clients.bcp import BcpClient
from sqlpack.clients.scripter import SqlAlchemyScripter, create_source_engine
from sqlpack.clients.sqlcmd import SqlCmdClient, classify_script_exit

__all__ = [
    "SqlClient",
    "BulkCopyClient",
    "ObjectScripter",
    "ScriptedObject",
    "ScriptingOptions",
    "CATEGORY_OPTIONS",
    "CONSTRAINT_OPTIONS",
    "MODULE_OPTIONS",
    "TABLE_OPTIONS",
    "SqlCmdClient",
    "BcpClient",
    "SqlAlchemyScripter",
    "create_source_engine",
    "classify_script_exit",
]
