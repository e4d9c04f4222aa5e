"""SQL Server object scripting via SQLAlchemy reflection.

Tables, indexes and foreign keys are reflected and compiled back to DDL
with the ``mssql`` dialect.  Check constraints, triggers, procedures,
functions and views are read verbatim from the catalog views
(``sys.check_constraints``, ``sys.sql_modules``).

Usage:
    engine = create_source_engine(connection, "Shop")
    scripter = SqlAlchemyScripter(engine, "Shop")
    tables = scripter.list_tables()
    objects = scripter.script(ObjectCategory.TABLES, TABLE_OPTIONS)
"""

from typing import Any

from sqlalchemy import CheckConstraint, MetaData, bindparam, create_engine, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.schema import AddConstraint, CreateIndex, CreateTable

from sqlpack.clients.base import ScriptedObject, ScriptingOptions
from sqlpack.config.models import ConnectionSettings
from sqlpack.manifest.models import ObjectCategory, TableIdentifier, quote_name

_TABLES_SQL = text(
    """
    SELECT s.name AS schema_name, t.name AS table_name
    FROM sys.tables t
    JOIN sys.schemas s ON s.schema_id = t.schema_id
    WHERE t.is_ms_shipped = 0
    ORDER BY s.name, t.name
    """
)

_CHECKS_SQL = text(
    """
    SELECT s.name, t.name, cc.name, cc.definition, cc.is_disabled
    FROM sys.check_constraints cc
    JOIN sys.tables t ON t.object_id = cc.parent_object_id
    JOIN sys.schemas s ON s.schema_id = t.schema_id
    WHERE t.is_ms_shipped = 0
    ORDER BY s.name, t.name, cc.name
    """
)

_MODULES_SQL = text(
    """
    SELECT s.name, o.name, o.type, m.definition
    FROM sys.sql_modules m
    JOIN sys.objects o ON o.object_id = m.object_id
    JOIN sys.schemas s ON s.schema_id = o.schema_id
    WHERE o.is_ms_shipped = 0 AND o.type IN :types
    ORDER BY o.create_date, o.object_id
    """
).bindparams(bindparam("types", expanding=True))

_MODULE_TYPES: dict[ObjectCategory, list[str]] = {
    ObjectCategory.PROCEDURES: ["P"],
    ObjectCategory.FUNCTIONS: ["FN", "IF", "TF"],
    ObjectCategory.VIEWS: ["V"],
}


def create_source_engine(
    connection: ConnectionSettings,
    database: str,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine for ``database`` over pyodbc.

    Default settings:

    - ``pool_pre_ping=True``: Validate connections before checkout.
    - ``connect_args={"timeout": 10}``: Login timeout in seconds.

    Args:
        connection: Server and credentials.
        database: Database to script.
        **kwargs: Additional keyword arguments forwarded to ``create_engine``.
    """
    host, port = connection.host_and_port
    query: dict[str, str] = {"driver": connection.odbc_driver}
    if connection.trust_server_certificate:
        query["TrustServerCertificate"] = "yes"

    if connection.uses_trusted_connection:
        query["Trusted_Connection"] = "yes"
        username = password = None
    else:
        username = connection.username
        password = connection.password.get_secret_value()

    url = URL.create(
        "mssql+pyodbc",
        username=username,
        password=password,
        host=host,
        port=port,
        database=database,
        query=query,
    )

    defaults: dict[str, Any] = {
        "pool_pre_ping": True,
        "connect_args": {"timeout": 10},
    }
    merged = {**defaults, **kwargs}
    return create_engine(url, **merged)


class SqlAlchemyScripter:
    """``ObjectScripter`` for one SQL Server database.

    Reflection happens once, on first use, and is reused by the table and
    constraint categories.
    """

    def __init__(self, engine: Engine, database: str):
        self.engine = engine
        self.database = database
        self._tables: list[TableIdentifier] | None = None
        self._metadata: MetaData | None = None

    def list_tables(self) -> list[TableIdentifier]:
        if self._tables is None:
            with self.engine.connect() as conn:
                rows = conn.execute(_TABLES_SQL).all()
            self._tables = [TableIdentifier(self.database, s, t) for s, t in rows]
        return self._tables

    def script(
        self,
        category: ObjectCategory,
        options: ScriptingOptions,
    ) -> list[ScriptedObject]:
        if category is ObjectCategory.TABLES:
            return self._script_tables(options)
        if category is ObjectCategory.CONSTRAINTS:
            return self._script_constraints(options)
        return self._script_modules(category)

    # ------------------------------------------------------------------
    # Reflection
    # ------------------------------------------------------------------

    def _reflect(self) -> MetaData:
        if self._metadata is None:
            metadata = MetaData()
            by_schema: dict[str, list[str]] = {}
            for t in self.list_tables():
                by_schema.setdefault(t.schema, []).append(t.table)
            for schema, names in by_schema.items():
                metadata.reflect(bind=self.engine, schema=schema, only=names)
            # Checks are scripted from the catalog, after all tables exist
            for table in metadata.tables.values():
                for constraint in [c for c in table.constraints if isinstance(c, CheckConstraint)]:
                    table.constraints.discard(constraint)
            self._metadata = metadata
        return self._metadata

    def _reflected(self):
        metadata = self._reflect()
        for ident in self.list_tables():
            yield ident, metadata.tables[f"{ident.schema}.{ident.table}"]

    def _compile(self, ddl) -> str:
        return str(ddl.compile(dialect=self.engine.dialect)).strip()

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def _script_tables(self, options: ScriptingOptions) -> list[ScriptedObject]:
        objects: list[ScriptedObject] = []
        for ident, table in self._reflected():
            # Foreign keys belong to the constraints script
            create = CreateTable(table, include_foreign_key_constraints=[])
            objects.append(
                ScriptedObject(
                    category=ObjectCategory.TABLES,
                    schema=ident.schema,
                    name=ident.table,
                    definition=self._compile(create),
                    object_type="TABLE",
                )
            )
            if options.include_indexes:
                for index in sorted(table.indexes, key=lambda i: i.name or ""):
                    objects.append(
                        ScriptedObject(
                            category=ObjectCategory.TABLES,
                            schema=ident.schema,
                            name=index.name or "",
                            definition=self._compile(CreateIndex(index)),
                            object_type="INDEX",
                        )
                    )
        return objects

    def _script_constraints(self, options: ScriptingOptions) -> list[ScriptedObject]:
        objects: list[ScriptedObject] = []

        if options.foreign_keys:
            for ident, table in self._reflected():
                fks = sorted(table.foreign_key_constraints, key=lambda c: c.name or "")
                for fk in fks:
                    objects.append(
                        ScriptedObject(
                            category=ObjectCategory.CONSTRAINTS,
                            schema=ident.schema,
                            name=fk.name or "",
                            definition=self._compile(AddConstraint(fk)),
                            object_type="FOREIGN KEY",
                        )
                    )

        with self.engine.connect() as conn:
            if options.checks:
                for schema, table, name, definition, disabled in conn.execute(_CHECKS_SQL):
                    target = f"{quote_name(schema)}.{quote_name(table)}"
                    check_mode = "NOCHECK" if disabled else "CHECK"
                    objects.append(
                        ScriptedObject(
                            category=ObjectCategory.CONSTRAINTS,
                            schema=schema,
                            name=name,
                            definition=(
                                f"ALTER TABLE {target} WITH {check_mode} "
                                f"ADD CONSTRAINT {quote_name(name)} CHECK {definition}"
                            ),
                            object_type="CHECK",
                        )
                    )

            if options.triggers:
                rows = conn.execute(_MODULES_SQL, {"types": ["TR"]})
                objects.extend(
                    self._module_objects(ObjectCategory.CONSTRAINTS, rows)
                )

        return objects

    def _script_modules(self, category: ObjectCategory) -> list[ScriptedObject]:
        with self.engine.connect() as conn:
            rows = conn.execute(_MODULES_SQL, {"types": _MODULE_TYPES[category]})
            return self._module_objects(category, rows)

    @staticmethod
    def _module_objects(category: ObjectCategory, rows) -> list[ScriptedObject]:
        objects = []
        for schema, name, obj_type, definition in rows:
            # Encrypted modules have no visible definition
            if not definition:
                continue
            objects.append(
                ScriptedObject(
                    category=category,
                    schema=schema,
                    name=name,
                    definition=definition.strip(),
                    object_type=obj_type.strip(),
                )
            )
        return objects
